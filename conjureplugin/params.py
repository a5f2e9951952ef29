from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from conjureplugin.irprovider import IRProvider


@dataclass(frozen=True)
class ConjureProjectParam:
    output_dir: str
    ir_provider: IRProvider
    # Whether the project's IR is included in "publish".
    publish: bool = False
    # Whether server code is generated in addition to clients and types.
    server: bool = False


@dataclass(frozen=True)
class ConjureProjectParams:
    """Projects keyed by name; sorted_keys fixes processing and report order."""

    sorted_keys: tuple[str, ...] = ()
    params: dict[str, ConjureProjectParam] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = [k for k in self.sorted_keys if k not in self.params]
        if missing:
            raise ValueError(f"sorted_keys reference unknown projects: {missing}")

    def ordered_params(self) -> list[ConjureProjectParam]:
        return [self.params[k] for k in self.sorted_keys]

    def items(self) -> Iterator[tuple[str, ConjureProjectParam]]:
        for k in self.sorted_keys:
            yield k, self.params[k]

    def __len__(self) -> int:
        return len(self.sorted_keys)
