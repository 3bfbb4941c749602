"""Distance-tiered shipping fees between vendor and customer districts."""

from collections.abc import Iterable, Mapping

LOCAL_FEE = 100.0
DISTANT_FEE = 200.0

# district -> metro group; districts in one group count as the same place
DEFAULT_METRO_GROUPS: Mapping[str, str] = {
    "kathmandu": "kathmandu-valley",
    "lalitpur": "kathmandu-valley",
    "bhaktapur": "kathmandu-valley",
}


def _normalise(district: str) -> str:
    return district.strip().casefold()


class ShippingTable:
    def __init__(
        self,
        metro_groups: Mapping[str, str] | None = None,
        local_fee: float = LOCAL_FEE,
        distant_fee: float = DISTANT_FEE,
    ) -> None:
        groups = DEFAULT_METRO_GROUPS if metro_groups is None else metro_groups
        self._groups = {_normalise(district): group for district, group in groups.items()}
        self.local_fee = local_fee
        self.distant_fee = distant_fee

    def metro_group(self, district: str) -> str | None:
        return self._groups.get(_normalise(district))

    def is_local(self, vendor_district: str, customer_district: str) -> bool:
        if _normalise(vendor_district) == _normalise(customer_district):
            return True
        vendor_group = self.metro_group(vendor_district)
        return vendor_group is not None and vendor_group == self.metro_group(customer_district)

    def fee_between(self, vendor_district: str, customer_district: str) -> float:
        return self.local_fee if self.is_local(vendor_district, customer_district) else self.distant_fee

    def total_fee(self, vendor_districts: Iterable[str], customer_district: str) -> float:
        """Sum one fee per distinct vendor district, however many vendors share it."""
        distinct = {_normalise(d): d for d in vendor_districts}
        return sum(self.fee_between(d, customer_district) for d in distinct.values())
