"""
Shipping option resolver - per-package shipping methods from the pricing service
"""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Any

from core.errors import ValidationError
from models.money import money
from models.shipping import (
    Package, PackageOptions, RemotePackageInfo, ShippingMethodId, ShippingQuote
)

logger = logging.getLogger(__name__)

NO_OPTIONS_ERROR = "No shipping method is available for this package"


class ShippingOptionResolver:
    # Prices are never computed locally; the catalog service owns weight/volume rules

    def __init__(self, catalog_client):
        self.catalog = catalog_client

    @staticmethod
    def request_items(packages: List[Package]) -> List[Dict[str, Any]]:
        return [
            {"variantId": line.variant_id, "quantity": line.quantity}
            for package in packages for line in package.lines
        ]

    def fetch(self, packages: List[Package]) -> ShippingQuote:
        # One collaborator call per cart-selection change
        logger.info("Fetching shipping options for %d packages", len(packages))
        return self.catalog.resolve_shipping_options(self.request_items(packages))

    def merge(self, packages: List[Package], quote: ShippingQuote) -> List[PackageOptions]:
        # Attach remote options and flags to the locally partitioned packages
        remote: Dict[Tuple[str, Any], RemotePackageInfo] = {}
        for info in quote.packages:
            remote.setdefault((info.warehouse_key, info.kind), info)

        local_keys = {(p.warehouse_key, p.kind) for p in packages}
        for key in remote:
            if key not in local_keys:
                logger.warning("Pricing service returned unknown package %s/%s", key[0], key[1].value)

        resolved = []
        for package in packages:
            info = remote.get((package.warehouse_key, package.kind))
            if info is None:
                resolved.append(PackageOptions(package=package, options=[], error=NO_OPTIONS_ERROR))
                continue

            resolved.append(PackageOptions(
                package=self._apply_remote_flags(package, info),
                options=list(info.options),
                default_method=info.selected_method
            ))
        return resolved

    def _apply_remote_flags(self, package: Package, info: RemotePackageInfo) -> Package:
        threshold = info.free_shipping_threshold
        if threshold is None:
            threshold = package.free_shipping_threshold
        if info.has_free_shipping is not None:
            has_free_shipping = info.has_free_shipping
        else:
            has_free_shipping = package.warehouse_subtotal >= threshold
        return replace(
            package,
            is_locker_eligible=info.is_locker_eligible,
            is_carrier_only=info.is_carrier_only,
            is_locker_only=info.is_locker_only,
            has_free_shipping=has_free_shipping,
            locker_parcel_count=info.locker_parcel_count,
            free_shipping_threshold=threshold
        )

    def resolve(self, packages: List[Package]) -> Tuple[List[PackageOptions], List[str]]:
        quote = self.fetch(packages)
        return self.merge(packages, quote), list(quote.warnings)

    @staticmethod
    def reconcile(options: PackageOptions,
                  current: Optional[ShippingMethodId]) -> Tuple[Optional[ShippingMethodId], Optional[str]]:
        # Returns (method, error) for a package after its options were (re)fetched
        forced = options.forced_option
        if forced is not None:
            return forced.id, None

        if current is not None and options.is_selectable(current):
            return current, None

        # Server default only applies when nothing was chosen yet
        if current is None and options.is_selectable(options.default_method):
            return options.default_method, None

        selectable = options.selectable_options
        if selectable:
            return selectable[0].id, None
        return None, options.error or NO_OPTIONS_ERROR

    @staticmethod
    def validate_choice(options: PackageOptions, method: ShippingMethodId) -> None:
        forced = options.forced_option
        if forced is not None and method is not forced.id:
            raise ValidationError(
                f"Package {options.package.id} must ship with {forced.name}",
                {options.package.id: f"method {forced.id.value} is mandatory"}
            )
        option = options.find(method)
        if option is None:
            raise ValidationError(
                f"Method {method.value} is not offered for package {options.package.id}",
                {options.package.id: "unknown method"}
            )
        if not options.is_selectable(method):
            reason = option.blocked_reason or "method unavailable"
            raise ValidationError(
                f"Method {method.value} is unavailable for package {options.package.id}: {reason}",
                {options.package.id: reason}
            )

    @staticmethod
    def selected_price(options: PackageOptions, method: Optional[ShippingMethodId]) -> Decimal:
        option = options.find(method)
        if option is None or not options.is_selectable(method):
            return money(0)
        return money(option.price)
