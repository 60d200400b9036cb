"""Click option helpers for fclipsync."""
import click

from fclipsync.config import ConfigError, parse_setting


def _check_mutual_exclusion(name: str, not_required_if: list[str], opts: dict) -> None:
    """Raise UsageError if mutually exclusive options are both present.

    Args:
        name: Name of the current option.
        not_required_if: List of option names that are mutually exclusive.
        opts: Dictionary of parsed options.

    Raises:
        click.UsageError: If both options are present.
    """
    for other in not_required_if:
        if opts.get(other):
            first = name.replace("_", "-")
            second = other.replace("_", "-")
            raise click.UsageError(f"Options --{first} and --{second} are mutually exclusive")


class MutuallyExclusiveOption(click.Option):
    """Click option that enforces mutual exclusivity with other options."""

    def __init__(self, *args, **kwargs):
        """Initialize with not_required_if parameter for mutual exclusion."""
        self.not_required_if = kwargs.pop("not_required_if", [])
        super().__init__(*args, **kwargs)

    def handle_parse_result(self, ctx, opts, args):
        """Check mutual exclusion before the value is stored."""
        if opts.get(self.name):
            _check_mutual_exclusion(self.name, self.not_required_if, opts)
        return super().handle_parse_result(ctx, opts, args)


def parse_settings(ctx, param, values) -> list[tuple[str, object]]:
    """Click callback turning repeated KEY=VALUE strings into typed pairs."""
    settings = []
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep:
            raise click.BadParameter(f"{item!r} is not of the form KEY=VALUE")
        try:
            settings.append((key.strip(), parse_setting(key.strip(), raw)))
        except ConfigError as e:
            raise click.BadParameter(str(e)) from e
    return settings
