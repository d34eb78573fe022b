"""Command templates and builders for the VPN client and browser."""

from typing import FrozenSet, List, Optional
from dataclasses import dataclass


URL_MARKER = "%s"


class CommandError(Exception):
    """Base exception for command-related errors."""
    pass


class ValidationError(CommandError):
    """Raised when command validation fails."""
    pass


@dataclass
class Command:
    """Command builder with validation."""
    base_cmd: List[str]
    use_sudo: bool = False
    _valid_options: Optional[FrozenSet[str]] = None

    def _validate_option(self, opt: str) -> None:
        """Reject options the command does not accept, if it declares any."""
        if self._valid_options is not None:
            # Remove leading dashes for validation
            opt_name = opt.lstrip('-').replace('-', '_')

            if opt_name not in self._valid_options:
                valid_opts = ", ".join(f"--{name.replace('_', '-')}"
                                       for name in sorted(self._valid_options))
                raise ValidationError(
                    f"Invalid option '{opt}' for command {self.base_cmd[0]}. "
                    f"Valid options are: {valid_opts}"
                )

    def _validate_executable(self) -> None:
        """Validate that base command exists."""
        if not self.base_cmd or not self.base_cmd[0]:
            raise ValidationError("Command cannot be empty")

    @classmethod
    def from_args(cls, args: List[str], use_sudo: bool = False,
                  valid_options: Optional[FrozenSet[str]] = None) -> 'Command':
        """Create command from an argument list with optional validation rules."""
        command = cls(list(args), use_sudo, valid_options)
        command._validate_executable()
        return command

    def with_options(self, **kwargs: str) -> 'Command':
        """Add multiple options with validation."""
        cmd = self.base_cmd.copy()
        for opt, value in kwargs.items():
            self._validate_option(opt)
            cmd.append("--" + opt.replace("_", "-"))
            if value is not None:
                cmd.append(str(value))
        return Command(cmd, self.use_sudo, self._valid_options)

    def substitute(self, marker: str, value: str) -> 'Command':
        """Replace every argument equal to marker with value."""
        if marker not in self.base_cmd:
            raise ValidationError(f"Command {self.base_cmd[0]} has no '{marker}' placeholder")
        cmd = [value if arg == marker else arg for arg in self.base_cmd]
        return Command(cmd, self.use_sudo, self._valid_options)

    def as_sudo(self) -> 'Command':
        """Mark command to be executed with sudo."""
        return Command(self.base_cmd, True, self._valid_options)

    def build(self) -> List[str]:
        """Get final command list."""
        self._validate_executable()
        return ["sudo"] + self.base_cmd if self.use_sudo else self.base_cmd


OPENVPN_OPTIONS = frozenset({
    'config',
    'auth_user_pass',
})


def openvpn(binary: str) -> Command:
    """OpenVPN command rooted at the given binary."""
    return Command.from_args([str(binary)], valid_options=OPENVPN_OPTIONS)


def browser(template: List[str]) -> Command:
    """Browser command from a template containing the URL marker."""
    return Command.from_args(template)
