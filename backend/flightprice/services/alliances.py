"""Static carrier → alliance membership, keyed by IATA carrier code."""
from typing import Dict, FrozenSet, Iterable, List, Optional


STAR_ALLIANCE = frozenset({
    "AC", "NH", "OZ", "OS", "AV", "BR", "CA", "CM", "MS", "ET",
    "LH", "SK", "SQ", "SA", "LX", "TP", "TG", "TK", "UA", "ZH",
})

ONEWORLD = frozenset({
    "AA", "BA", "CX", "AY", "IB", "JL", "LA", "MH", "QF", "QR",
    "RJ", "UL", "S7",
})

SKYTEAM = frozenset({
    "SU", "AR", "AM", "AF", "AZ", "CI", "MU", "CZ", "OK", "DL",
    "KE", "KL", "ME", "SV", "RO", "VN", "MF",
})


class CarrierAllianceTable:
    DEFAULT_ALLIANCES: Dict[str, FrozenSet[str]] = {
        "Star Alliance": STAR_ALLIANCE,
        "Oneworld": ONEWORLD,
        "SkyTeam": SKYTEAM,
    }

    def __init__(self, alliances: Optional[Dict[str, Iterable[str]]] = None):
        source = alliances if alliances is not None else self.DEFAULT_ALLIANCES
        self._by_code: Dict[str, str] = {}
        for name, codes in source.items():
            for code in codes:
                self._by_code[code.upper()] = name

    @property
    def alliance_names(self) -> List[str]:
        return sorted(set(self._by_code.values()))

    def alliance_for(self, code: Optional[str]) -> Optional[str]:
        if not code:
            return None
        return self._by_code.get(code.strip().upper())

    def is_major_carrier(self, code: Optional[str]) -> bool:
        return self.alliance_for(code) is not None

    def all_major(self, codes: Iterable[str]) -> bool:
        """True when every code belongs to an alliance (and there is at least one)."""
        codes = list(codes)
        return bool(codes) and all(self.is_major_carrier(code) for code in codes)
