"""Factory for creating VPN client commands."""

from pathlib import Path
from typing import Optional
from .commands import OPENVPN


class VPNCommandFactory:
    """Factory for creating VPN client commands."""

    @staticmethod
    def start_vpn(
            config_path: Path,
            credentials_path: Optional[Path] = None,
            binary: str = "openvpn",
            verb: Optional[int] = None,
            use_sudo: bool = False,
    ) -> list[str]:
        """
        Create OpenVPN start command.

        Output is not redirected by OpenVPN itself; the supervisor captures
        stdout and stderr into the tunnel log file.
        """
        cmd = OPENVPN.with_executable(binary).with_options(config=str(config_path))

        if credentials_path is not None:
            cmd = cmd.with_options(auth_user_pass=str(credentials_path), auth_nocache=None)

        if verb is not None:
            cmd = cmd.with_option("verb", str(verb))

        if use_sudo:
            cmd = cmd.as_sudo()

        return cmd.build()
