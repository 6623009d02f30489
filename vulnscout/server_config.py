"""Options of the server command."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from vulnscout.options import CacheOption, DBOption, GlobalOption, _flag_str


@dataclass
class ServerConfig:
    """All option groups accepted by the server command."""

    global_option: GlobalOption = field(default_factory=GlobalOption)
    db: DBOption = field(default_factory=DBOption)
    cache: CacheOption = field(default_factory=CacheOption)

    listen: str = ""
    token: str = ""
    token_header: str = ""

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any], args: Sequence[str]) -> ServerConfig:
        return cls(
            global_option=GlobalOption.from_flags(flags, args),
            db=DBOption.from_flags(flags),
            cache=CacheOption.from_flags(flags),
            listen=_flag_str(flags, "listen"),
            token=_flag_str(flags, "token"),
            token_header=_flag_str(flags, "token-header"),
        )

    def init(self) -> None:
        """Validate the database and cache options."""
        self.db.init()
        self.cache.init()