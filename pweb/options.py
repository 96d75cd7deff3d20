import enum


class Options(enum.IntFlag):
    """Behavior flags shared by every component of the server."""

    NONE = 0
    QUIET = 1 << 0
    VERBOSE = 1 << 1
    DEBUG = 1 << 2
    STRICT = 1 << 3

    @classmethod
    def from_flags(cls, quiet: bool = False, verbose: bool = False,
                   debug: bool = False, strict: bool = False) -> 'Options':
        """Build an option set from individual booleans."""
        options = cls.NONE
        if quiet:
            options |= cls.QUIET
        if verbose:
            options |= cls.VERBOSE
        if debug:
            options |= cls.DEBUG
        if strict:
            options |= cls.STRICT
        return options

    def is_quiet(self) -> bool:
        return bool(self & Options.QUIET)

    def is_verbose(self) -> bool:
        # Quiet always wins over verbose
        return bool(self & Options.VERBOSE) and not self.is_quiet()

    def is_debug(self) -> bool:
        return bool(self & Options.DEBUG)

    def is_strict(self) -> bool:
        return bool(self & Options.STRICT)
