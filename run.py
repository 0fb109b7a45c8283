import uvicorn
from tunnelwatch.main import app
from tunnelwatch.logging_utility import logger


if __name__=='__main__':
    logger.info("Starting TunnelWatch application")
    uvicorn.run(app, host='127.0.0.1', port=8000)
