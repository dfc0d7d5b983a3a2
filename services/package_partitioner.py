"""
Package partitioner - splits cart lines into shipping packages
"""
from decimal import Decimal
from typing import Dict, List, Tuple

from models.cart import CartLine
from models.money import money
from models.shipping import (
    Package, PackageKind, DEFAULT_WAREHOUSE, build_package, package_id_for
)


class PackagePartitioner:
    # Groups lines by warehouse, with oversized goods in their own package

    def __init__(self, free_shipping_threshold: Decimal = Decimal("300.00")):
        self.free_shipping_threshold = money(free_shipping_threshold)

    @staticmethod
    def package_key(line: CartLine) -> Tuple[str, PackageKind]:
        kind = PackageKind.OVERSIZED if line.is_oversized else PackageKind.STANDARD
        return line.warehouse_id or DEFAULT_WAREHOUSE, kind

    def partition(self, lines: List[CartLine]) -> List[Package]:
        # Always recomputed from scratch: membership changes can merge or split packages
        groups: Dict[Tuple[str, PackageKind], List[CartLine]] = {}
        for line in lines:
            # dicts keep insertion order, which gives first-appearance ordering
            groups.setdefault(self.package_key(line), []).append(line)

        packages = []
        for (warehouse_key, kind), group_lines in groups.items():
            warehouse_id = None if warehouse_key == DEFAULT_WAREHOUSE else warehouse_key
            packages.append(build_package(
                package_id_for(warehouse_key, kind), warehouse_id, kind,
                group_lines, self.free_shipping_threshold
            ))
        return packages

    def remaining_for_free_shipping(self, package: Package) -> Decimal:
        # Uses the threshold carried by the package, which the pricing service may override
        return package.remaining_for_free_shipping()
