"""Command templates and builders for the VPN client process."""

from typing import List, Optional, Dict
from dataclasses import dataclass
from pathlib import Path


class CommandError(Exception):
    """Base exception for command-related errors."""
    pass


class ValidationError(CommandError):
    """Raised when command validation fails."""
    pass


@dataclass(frozen=True)
class Command:
    """Immutable command builder with option validation."""
    base_cmd: List[str]
    use_sudo: bool = False
    _valid_options: Optional[Dict[str, type]] = None

    def _validate_option(self, opt: str, value: Optional[str]) -> None:
        """Validate option and its value if validation rules exist."""
        if self._valid_options is None:
            return

        opt_name = opt.lstrip('-').replace('-', '_')
        if opt_name not in self._valid_options:
            valid_opts = ", ".join(f"--{name.replace('_', '-')}"
                                   for name in self._valid_options.keys())
            raise ValidationError(
                f"Invalid option '{opt}' for command {self.base_cmd[0]}. "
                f"Valid options are: {valid_opts}"
            )

        expected_type = self._valid_options[opt_name]
        if expected_type is type(None):
            if value is not None:
                raise ValidationError(f"Option '{opt}' is a flag and takes no value")
            return
        if value is None:
            raise ValidationError(f"Option '{opt}' requires a value")
        try:
            if expected_type == Path:
                if not value:
                    raise ValueError("empty path")
                Path(value)
            else:
                expected_type(value)
        except ValueError:
            raise ValidationError(
                f"Invalid value '{value}' for option '{opt}'. Expected {expected_type.__name__}"
            )

    def _validate_executable(self) -> None:
        """Validate that base command exists."""
        if not self.base_cmd or not self.base_cmd[0]:
            raise ValidationError("Command cannot be empty")

    @classmethod
    def from_str(cls, cmd: str, use_sudo: bool = False, valid_options: Optional[Dict[str, type]] = None) -> 'Command':
        """Create command from string with optional validation rules."""
        command = cls(cmd.split(), use_sudo, valid_options)
        command._validate_executable()
        return command

    def with_executable(self, executable: str) -> 'Command':
        """Replace the program name, keeping arguments and validation rules."""
        return Command([executable] + self.base_cmd[1:], self.use_sudo, self._valid_options)

    def with_option(self, opt: str, value: Optional[str] = None) -> 'Command':
        """Add option with validation."""
        opt_clean = opt.lstrip('-')
        self._validate_option(opt_clean, value)
        cmd = self.base_cmd.copy()
        cmd.append(f"--{opt_clean.replace('_', '-')}")
        if value is not None:
            cmd.append(str(value))
        return Command(cmd, self.use_sudo, self._valid_options)

    def with_options(self, **kwargs: Optional[str]) -> 'Command':
        """Add multiple options with validation."""
        cmd = self
        for opt, value in kwargs.items():
            cmd = cmd.with_option(opt, str(value) if value is not None else None)
        return cmd

    def as_sudo(self) -> 'Command':
        """Mark command to be executed with sudo."""
        return Command(self.base_cmd, True, self._valid_options)

    def build(self) -> List[str]:
        """Get final command list."""
        self._validate_executable()
        return ["sudo"] + self.base_cmd if self.use_sudo else list(self.base_cmd)


OPENVPN_OPTIONS = {
    'config': Path,
    'auth_user_pass': Path,
    'auth_nocache': type(None),
    'verb': int,
}


OPENVPN = Command.from_str("openvpn", valid_options=OPENVPN_OPTIONS)
