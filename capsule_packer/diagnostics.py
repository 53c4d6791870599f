"""Recoverable build conditions.

Conditions that do not stop a build (an unmatched caplet, a skipped file set,
a dependency without a file, ...) are recorded here instead of being logged
where they happen. The builder surfaces them once, at the end of the build,
and returns them in its report.
"""

from dataclasses import dataclass
import logging


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A recoverable condition met during a build.

    :ivar code: Short machine-friendly identifier (e.g. ``caplet-not-found``).
    :ivar message: Operator-facing message.
    :ivar variant: Variant name the condition belongs to, if any.
    """

    code: str
    message: str
    variant: str | None = None


class Diagnostics:
    """Ordered, de-duplicated collection of :class:`~Diagnostic` records."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def warn(self, code: str, message: str, *, variant: str | None = None) -> Diagnostic:
        """Record a warning.

        Identical records are kept once.

        :param code: Diagnostic code.
        :param message: Operator-facing message.
        :param variant: Optional variant name.
        :returns: The recorded diagnostic.
        """

        diag: Diagnostic = Diagnostic(code=code, message=message, variant=variant)
        if diag not in self._items:
            self._items.append(diag)
        return diag

    def codes(self) -> list[str]:
        return [d.code for d in self._items]

    def items(self) -> list[Diagnostic]:
        return list(self._items)

    def emit(self, logger: logging.Logger) -> None:
        """Log every recorded diagnostic at warning level.

        :param logger: Destination logger.
        """

        for d in self._items:
            if d.variant is not None:
                logger.warning(f"capsule-packer: [{d.variant}] {d.message}")
            else:
                logger.warning(f"capsule-packer: {d.message}")

    def __len__(self) -> int:
        return len(self._items)
