from dataclasses import asdict, dataclass


@dataclass
class Stats:
    """Counters for one run.

    Only the runner mutates these, and always between awaits on the event loop
    thread, so updates never interleave. Readers may see intermediate values.
    """

    concurrent: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    peak_concurrent: int = 0

    def item_started(self) -> None:
        self.concurrent += 1
        self.attempted += 1
        if self.concurrent > self.peak_concurrent:
            self.peak_concurrent = self.concurrent

    def item_succeeded(self) -> None:
        self.succeeded += 1

    def item_failed(self) -> None:
        self.failed += 1

    def item_finished(self) -> None:
        self.concurrent -= 1

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    def as_dict(self) -> dict[str, int]:
        return asdict(self)
