"""Ordered flag-to-value mapping that drives the transcoder argument list."""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping

OptionValue = str | list[str]


def _normalize(value) -> OptionValue:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return str(value)


class OptionSet(MutableMapping[str, OptionValue]):
    """Insertion-ordered transcoder flags.

    A value of ``""`` is a bare flag (``-an``). A list value emits the flag once
    per element (``-map 0:v -map 0:a``). Overwriting a flag keeps its original
    position so the emitted argument order only depends on when a flag was
    first introduced.
    """

    def __init__(self, options: Mapping[str, object] | None = None):
        self._options: dict[str, OptionValue] = {}
        if options:
            self.merge(options)

    def __getitem__(self, flag: str) -> OptionValue:
        return self._options[flag]

    def __setitem__(self, flag: str, value) -> None:
        self._options[flag] = _normalize(value)

    def __delitem__(self, flag: str) -> None:
        del self._options[flag]

    def __iter__(self) -> Iterator[str]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __repr__(self) -> str:
        return f"OptionSet({self._options!r})"

    def merge(self, options: Mapping[str, object]) -> None:
        """Insert or overwrite every flag of ``options``."""
        for flag, value in options.items():
            self[flag] = value

    def append(self, flag: str, value) -> None:
        """Add another value for ``flag``, turning it into a repeated flag."""
        current = self._options.get(flag)
        if current is None:
            self[flag] = value
        elif isinstance(current, list):
            current.append(str(value))
        else:
            self._options[flag] = [current, str(value)]

    def discard(self, flag: str, value) -> None:
        """Remove one value of a (possibly repeated) flag."""
        current = self._options.get(flag)
        value = str(value)
        if isinstance(current, list):
            if value in current:
                current.remove(value)
            if len(current) == 1:
                self._options[flag] = current[0]
            elif not current:
                del self._options[flag]
        elif current == value:
            del self._options[flag]

    def values_of(self, flag: str) -> list[str]:
        current = self._options.get(flag)
        if current is None:
            return []
        return list(current) if isinstance(current, list) else [current]

    def delete(self, flags: Iterable[str]) -> None:
        """Remove the named flags, ignoring the ones that are not set."""
        for flag in flags:
            self._options.pop(flag, None)

    def to_args(self) -> list[str]:
        """Flatten into alternating name/value tokens."""
        args: list[str] = []
        for flag, value in self._options.items():
            if isinstance(value, list):
                for item in value:
                    args.extend((flag, item))
            else:
                args.extend((flag, value))
        return args
