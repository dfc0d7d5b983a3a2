"""
Checkout controller - owns the checkout draft and drives it through the steps
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Any, Optional, Tuple

from core.errors import CheckoutError, CollaboratorError, SubmissionInProgressError, ValidationError
from core.settings import Settings
from models.cart import CartLine
from models.checkout import (
    Address, CheckoutDraft, CheckoutStep, PaymentMethod, PaymentSelection, Totals
)
from models.money import money_sum, to_float
from models.order import OrderResult, SavedAddress
from models.shipping import (
    LockerSlotSelection, Package, PackageOptions, PackageShippingSelection, ShippingMethodId
)
from services.address_override import CustomAddressOverride
from services.cart_selector import CartItemSelector
from services.coupon_service import CouponApplier
from services.locker_allocator import LockerSlotAllocator
from services.order_service import OrderService
from services.package_partitioner import PackagePartitioner
from services.shipping_service import ShippingOptionResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShippingFetch:
    """Ticket for one in-flight shipping request"""
    token: int
    lines_key: Tuple[Tuple[str, str, int], ...]
    packages: List[Package]


class CheckoutController:
    # Single owner of the CheckoutDraft; every mutation goes through a step action

    def __init__(self, session_id: str, cart_lines: List[CartLine],
                 catalog_client, address_book_client, order_client, coupon_client,
                 selected_item_ids: Optional[List[str]] = None,
                 authenticated: bool = False,
                 settings: Optional[Settings] = None,
                 draft_repository=None,
                 selection_repository=None,
                 draft: Optional[CheckoutDraft] = None):
        self.session_id = session_id
        self.authenticated = authenticated
        self.settings = settings or Settings()

        self.partitioner = PackagePartitioner(self.settings.free_shipping_threshold)
        self.resolver = ShippingOptionResolver(catalog_client)
        self.allocator = LockerSlotAllocator()
        self.address_override = CustomAddressOverride()
        self.selector = CartItemSelector(selected_item_ids)
        self.coupons = CouponApplier(coupon_client)
        self.order_service = OrderService(address_book_client, order_client, self.allocator)
        self.address_book = address_book_client
        self.draft_repo = draft_repository
        self.selection_repo = selection_repository

        # Authenticated sessions never see the auth choice step
        initial_step = CheckoutStep.ADDRESS if authenticated else CheckoutStep.AUTH_CHOICE
        self.draft = draft or CheckoutDraft(step=initial_step)

        self.cart_lines: List[CartLine] = []
        self.checkout_lines: List[CartLine] = []
        self.packages: List[Package] = []
        self.package_options: List[PackageOptions] = []
        self.warnings: List[str] = []
        self.shipping_error: Optional[str] = None
        self.saved_addresses: List[SavedAddress] = []
        self.address_error: Optional[str] = None
        self.outcome: Optional[OrderResult] = None

        self._shipping_token = 0
        self._place_lock = threading.Lock()
        self._methods: Dict[str, ShippingMethodId] = {}
        self._lockers: Dict[str, List[LockerSlotSelection]] = {}
        self._package_errors: Dict[str, str] = {}
        self._shipping_estimate: Decimal = money_sum(s.price for s in self.draft.shipping_selections)

        self._restore_shipping_choices()
        self._set_cart(cart_lines)

    # === Cart ===
    def _set_cart(self, lines: List[CartLine]) -> None:
        self.cart_lines = list(lines)
        self.checkout_lines = self.selector.select(self.cart_lines)
        self.packages = self.partitioner.partition(self.checkout_lines)
        # Options described the previous package set; any in-flight fetch is now stale
        self.package_options = []
        self._shipping_token += 1

    def _lines_key(self) -> Tuple[Tuple[str, str, int], ...]:
        return tuple((line.id, line.variant_id, line.quantity) for line in self.checkout_lines)

    def update_cart(self, lines: List[CartLine]) -> Dict[str, Any]:
        # Cart edits during checkout re-partition and re-fetch
        if self.outcome is not None:
            return self._closed()
        self._set_cart(lines)
        if not self.checkout_lines:
            return {"success": False, "error": "Your cart is empty", "error_type": "validation"}
        eager = self.draft.step < CheckoutStep.SHIPPING
        return self.refresh_shipping(eager=eager)

    @property
    def resolved_packages(self) -> List[Package]:
        # Packages enriched with pricing-service flags once options are known
        if self.package_options:
            return [options.package for options in self.package_options]
        return list(self.packages)

    # === Entry ===
    def start(self) -> Dict[str, Any]:
        # Eager shipping fetch and address book fetch run side by side
        fetch = self.begin_shipping_fetch()
        with ThreadPoolExecutor(max_workers=2) as pool:
            shipping_future = pool.submit(self.resolver.resolve, fetch.packages) if fetch.packages else None
            address_future = pool.submit(self.address_book.list) if self.authenticated else None

            if shipping_future is not None:
                try:
                    options, warnings = shipping_future.result()
                    self.apply_shipping_result(fetch, options, warnings)
                except CheckoutError as e:
                    # Best effort only; the shipping step fetches again
                    logger.warning("Eager shipping fetch failed: %s", e.message)

            if address_future is not None:
                try:
                    self.saved_addresses = address_future.result()
                    self.address_error = None
                except CheckoutError as e:
                    self.address_error = e.message

        return {"success": True, "checkout": self.snapshot()}

    # === Shipping fetch ===
    def begin_shipping_fetch(self) -> ShippingFetch:
        self._shipping_token += 1
        return ShippingFetch(
            token=self._shipping_token,
            lines_key=self._lines_key(),
            packages=list(self.packages)
        )

    def is_current(self, fetch: ShippingFetch) -> bool:
        return fetch.token == self._shipping_token and fetch.lines_key == self._lines_key()

    def apply_shipping_result(self, fetch: ShippingFetch, options: List[PackageOptions],
                              warnings: List[str]) -> bool:
        if not self.is_current(fetch):
            logger.info("Discarding stale shipping response (token %d, current %d)",
                        fetch.token, self._shipping_token)
            return False

        logger.info("Applying shipping options for %d packages", len(options))
        self.package_options = list(options)
        self.warnings = list(warnings)
        self.shipping_error = None
        self._reconcile_choices()
        if self.draft.shipping_selections:
            self._recommit_shipping()
        return True

    def refresh_shipping(self, eager: bool = False) -> Dict[str, Any]:
        if not self.packages:
            return {"success": False, "error": "Your cart is empty", "error_type": "validation"}

        fetch = self.begin_shipping_fetch()
        try:
            options, warnings = self.resolver.resolve(fetch.packages)
        except CheckoutError as e:
            if not self.is_current(fetch):
                return {"success": False, "stale": True}
            if eager:
                logger.warning("Eager shipping fetch failed: %s", e.message)
            else:
                self.shipping_error = e.message
            return self._failure(e)

        applied = self.apply_shipping_result(fetch, options, warnings)
        return {"success": applied, "stale": not applied, "totals": self.totals.to_dict()}

    def _reconcile_choices(self) -> None:
        self._package_errors = {}
        current_ids = set()
        for options in self.package_options:
            package_id = options.package.id
            current_ids.add(package_id)
            method, error = self.resolver.reconcile(options, self._methods.get(package_id))
            if method is None:
                self._methods.pop(package_id, None)
                self._lockers.pop(package_id, None)
                self._package_errors[package_id] = error
                continue

            self._methods[package_id] = method
            if method.is_locker:
                self.address_override.force_off(package_id)
                self._lockers[package_id] = self.allocator.resize(options.package, self._lockers.get(package_id))
            else:
                self._lockers.pop(package_id, None)

        for package_id in [pid for pid in self._methods if pid not in current_ids]:
            del self._methods[package_id]
            self._lockers.pop(package_id, None)
        self._update_shipping_estimate()

    def _update_shipping_estimate(self) -> None:
        if not self.package_options:
            return
        self._shipping_estimate = money_sum(
            self.resolver.selected_price(options, self._methods.get(options.package.id))
            for options in self.package_options
        )

    def _restore_shipping_choices(self) -> None:
        for selection in self.draft.shipping_selections:
            self._methods[selection.package_id] = selection.method
            if selection.method.is_locker:
                self._lockers[selection.package_id] = list(selection.locker_selections)
            elif selection.use_custom_address and selection.custom_address:
                self.address_override.restore(selection.package_id, selection.custom_address)

    def _options_for(self, package_id: str) -> PackageOptions:
        for options in self.package_options:
            if options.package.id == package_id:
                return options
        raise ValidationError(f"Unknown package: {package_id}", {package_id: "unknown package"})

    def _build_selections(self) -> List[PackageShippingSelection]:
        selections = []
        for options in self.package_options:
            package_id = options.package.id
            method = self._methods.get(package_id)
            if method is None:
                continue
            use_custom = self.address_override.is_enabled(package_id) and not method.is_locker
            selections.append(PackageShippingSelection(
                package_id=package_id,
                warehouse_id=options.package.warehouse_id,
                method=method,
                price=self.resolver.selected_price(options, method),
                locker_selections=list(self._lockers.get(package_id, [])) if method.is_locker else [],
                use_custom_address=use_custom,
                custom_address=self.address_override.address_for(package_id) if use_custom else None
            ))
        return selections

    def _recommit_shipping(self) -> None:
        # Refetched prices or methods flow into an already committed shipping choice
        self.draft = self.draft.with_changes(shipping_selections=self._build_selections())
        self._persist()

    # === Steps ===
    def _closed(self) -> Dict[str, Any]:
        return {"success": False, "error": "This checkout has already been submitted", "error_type": "closed"}

    @staticmethod
    def _failure(error: CheckoutError) -> Dict[str, Any]:
        if isinstance(error, SubmissionInProgressError):
            error_type = "in_flight"
        elif isinstance(error, CollaboratorError):
            error_type = "collaborator"
        else:
            error_type = "validation"
        return {
            "success": False,
            "error": error.message,
            "error_type": error_type,
            "field_errors": getattr(error, "field_errors", {})
        }

    def _require_step(self, step: CheckoutStep) -> None:
        if self.draft.step != step:
            raise ValidationError(
                f"Action not allowed at step {self.draft.step.name.lower()}",
                {"step": f"expected {step.name.lower()}"}
            )

    def _go_to(self, step: CheckoutStep, **changes) -> None:
        if self.draft.step == CheckoutStep.SHIPPING and step != CheckoutStep.SHIPPING:
            self.address_override.discard_disabled()
        self.draft = self.draft.with_changes(step=step, **changes)
        self._persist()

    def _persist(self) -> None:
        if self.draft_repo is not None:
            self.draft_repo.save(self.session_id, self.draft)

    def _run(self, action, *args) -> Dict[str, Any]:
        # Step actions report failures as result dictionaries
        if self.outcome is not None:
            return self._closed()
        try:
            result = action(*args) or {}
        except CheckoutError as e:
            return self._failure(e)
        result.setdefault("success", True)
        result.setdefault("step", int(self.draft.step))
        result.setdefault("totals", self.totals.to_dict())
        return result

    def choose_guest(self) -> Dict[str, Any]:
        return self._run(self._choose_guest)

    def _choose_guest(self):
        self._require_step(CheckoutStep.AUTH_CHOICE)
        self._go_to(CheckoutStep.ADDRESS, is_guest=True)

    def submit_address(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._run(self._submit_address, data)

    def _submit_address(self, data: Dict[str, Any]):
        self._require_step(CheckoutStep.ADDRESS)
        address = Address.from_dict(data)
        missing = address.missing_fields()
        if missing:
            raise ValidationError(
                "Please fill in the required address fields",
                {name: f"{name} is required" for name in missing}
            )
        self._go_to(CheckoutStep.SHIPPING, address=address)
        if not self.package_options:
            # A failed fetch shows up as the shipping banner
            self.refresh_shipping()
        return None

    def use_saved_address(self, address_id: str) -> Dict[str, Any]:
        return self._run(self._use_saved_address, address_id)

    def _use_saved_address(self, address_id: str):
        self._require_step(CheckoutStep.ADDRESS)
        saved = next((a for a in self.saved_addresses if a.id == address_id), None)
        if saved is None:
            raise ValidationError(f"Unknown saved address: {address_id}", {"addressId": "not found"})
        current = self.draft.address
        address = Address(
            first_name=saved.first_name,
            last_name=saved.last_name,
            email=current.email,
            phone=saved.phone or current.phone,
            street=saved.street,
            apartment=saved.apartment,
            postal_code=saved.postal_code,
            city=saved.city,
            country=saved.country
        )
        self.draft = self.draft.with_changes(address=address)
        self._persist()
        return {"address": address.to_dict()}

    def select_shipping_method(self, package_id: str, method: str) -> Dict[str, Any]:
        return self._run(self._select_shipping_method, package_id, method)

    def _select_shipping_method(self, package_id: str, method: str):
        self._require_step(CheckoutStep.SHIPPING)
        try:
            method_id = ShippingMethodId.parse(method)
        except ValueError:
            raise ValidationError(f"Unknown shipping method: {method}", {package_id: "unknown method"})
        options = self._options_for(package_id)
        self.resolver.validate_choice(options, method_id)

        self._methods[package_id] = method_id
        self._package_errors.pop(package_id, None)
        if method_id.is_locker:
            # Locker delivery has no destination address
            self.address_override.force_off(package_id)
            self._lockers[package_id] = self.allocator.resize(options.package, self._lockers.get(package_id))
        else:
            self._lockers.pop(package_id, None)
        self._update_shipping_estimate()
        return None

    def select_locker(self, package_id: str, slot_index: int, code: str, address: str = "") -> Dict[str, Any]:
        return self._run(self._select_locker, package_id, slot_index, code, address)

    def _select_locker(self, package_id: str, slot_index: int, code: str, address: str):
        self._require_step(CheckoutStep.SHIPPING)
        options = self._options_for(package_id)
        if self._methods.get(package_id) is not ShippingMethodId.INPOST_PACZKOMAT:
            raise ValidationError(
                f"Package {package_id} is not shipped to a parcel locker",
                {package_id: "locker method not selected"}
            )
        if not code or not code.strip():
            raise ValidationError("Locker code is required", {f"{package_id}.slot{slot_index}": "required"})
        try:
            self._lockers[package_id] = self.allocator.select(
                options.package, self._lockers.get(package_id, []), slot_index, code, address
            )
        except IndexError as e:
            raise ValidationError(str(e), {f"{package_id}.slot{slot_index}": "out of range"})
        return None

    def toggle_custom_address(self, package_id: str) -> Dict[str, Any]:
        return self._run(self._toggle_custom_address, package_id)

    def _toggle_custom_address(self, package_id: str):
        self._require_step(CheckoutStep.SHIPPING)
        self._options_for(package_id)
        enabled = self.address_override.toggle(package_id, self._methods.get(package_id))
        return {"useCustomAddress": enabled}

    def update_custom_address(self, package_id: str, field: str, value: str) -> Dict[str, Any]:
        return self._run(self._update_custom_address, package_id, field, value)

    def _update_custom_address(self, package_id: str, field: str, value: str):
        self._require_step(CheckoutStep.SHIPPING)
        address = self.address_override.update(package_id, field, value)
        return {"customAddress": address.to_dict()}

    def submit_shipping(self) -> Dict[str, Any]:
        return self._run(self._submit_shipping)

    def _submit_shipping(self):
        self._require_step(CheckoutStep.SHIPPING)
        if not self.package_options:
            raise ValidationError(
                self.shipping_error or "Shipping options are not loaded yet",
                {"shipping": "options unavailable"}
            )

        errors: Dict[str, str] = {}
        for options in self.package_options:
            package_id = options.package.id
            method = self._methods.get(package_id)
            if package_id in self._package_errors or method is None:
                errors[package_id] = self._package_errors.get(
                    package_id, f"Choose a shipping method for package {package_id}")
                continue
            if method.is_locker:
                errors.update(self.allocator.validation_errors(options.package, self._lockers.get(package_id, [])))
            else:
                errors.update(self.address_override.validation_errors(package_id))
        if errors:
            raise ValidationError("Complete the shipping choice for every package", errors)

        self._go_to(CheckoutStep.PAYMENT, shipping_selections=self._build_selections())
        return None

    def submit_payment(self, method: str) -> Dict[str, Any]:
        return self._run(self._submit_payment, method)

    def _submit_payment(self, method: str):
        self._require_step(CheckoutStep.PAYMENT)
        try:
            payment_method = PaymentMethod(method)
        except ValueError:
            raise ValidationError(f"Unknown payment method: {method}", {"payment": "unknown method"})
        self._go_to(CheckoutStep.SUMMARY, payment=PaymentSelection.for_method(payment_method))
        return None

    def back(self) -> Dict[str, Any]:
        return self._run(self._back)

    def _back(self):
        # Never returns to the auth choice once past it
        if self.draft.step > CheckoutStep.ADDRESS:
            self._go_to(CheckoutStep(self.draft.step - 1))
        return None

    def edit_step(self, step: int) -> Dict[str, Any]:
        return self._run(self._edit_step, step)

    def _edit_step(self, step: int):
        self._require_step(CheckoutStep.SUMMARY)
        if step not in (CheckoutStep.ADDRESS, CheckoutStep.SHIPPING, CheckoutStep.PAYMENT):
            raise ValidationError(f"Step {step} cannot be edited", {"step": "not editable"})
        # Direct jump; data of the steps in between stays untouched
        self._go_to(CheckoutStep(step))
        return None

    def resume_after_payment_cancel(self) -> Dict[str, Any]:
        if self.outcome is not None:
            return self._closed()
        self._go_to(CheckoutStep.PAYMENT)
        if not self.package_options:
            self.refresh_shipping()
        return {"success": True, "step": int(self.draft.step), "totals": self.totals.to_dict()}

    def set_consents(self, accept_terms: Optional[bool] = None,
                     accept_newsletter: Optional[bool] = None) -> Dict[str, Any]:
        return self._run(self._set_consents, accept_terms, accept_newsletter)

    def _set_consents(self, accept_terms: Optional[bool], accept_newsletter: Optional[bool]):
        changes = {}
        if accept_terms is not None:
            changes["accept_terms"] = bool(accept_terms)
        if accept_newsletter is not None:
            changes["accept_newsletter"] = bool(accept_newsletter)
        if changes:
            self.draft = self.draft.with_changes(**changes)
            self._persist()
        return None

    # === Coupons ===
    def apply_coupon(self, code: str) -> Dict[str, Any]:
        return self._run(self._apply_coupon, code)

    def _apply_coupon(self, code: str):
        coupon = self.coupons.apply(code)
        return {"coupon": coupon.to_dict()}

    def remove_coupon(self) -> Dict[str, Any]:
        return self._run(self.coupons.remove)

    # === Totals ===
    @property
    def totals(self) -> Totals:
        return Totals.compute(
            subtotal=money_sum(package.warehouse_subtotal for package in self.packages),
            shipping=self._shipping_estimate,
            payment_fee=self.draft.payment.extra_fee,
            discount=self.coupons.discount
        )

    # === Submission ===
    @property
    def submitting(self) -> bool:
        return self.order_service.submitting

    def place_order(self) -> Dict[str, Any]:
        # Held until the outcome is recorded, so a second request cannot submit again
        if not self._place_lock.acquire(blocking=False):
            return self._failure(SubmissionInProgressError("Your order is already being submitted"))
        try:
            return self._place_order()
        finally:
            self._place_lock.release()

    def _place_order(self) -> Dict[str, Any]:
        if self.outcome is not None:
            return self._closed()
        if self.submitting:
            return self._failure(SubmissionInProgressError("Your order is already being submitted"))
        if self.draft.step != CheckoutStep.SUMMARY:
            return {"success": False, "error": "Finish the previous steps first", "error_type": "validation"}
        if not self.package_options:
            self.refresh_shipping()
        if not self.package_options:
            # Parcel counts come only from the pricing service; without them locker slots cannot be checked
            return self._failure(CollaboratorError(
                "catalog", self.shipping_error or "Shipping options are unavailable, please try again"
            ))

        try:
            result = self.order_service.submit(self.draft, self.checkout_lines, self.resolved_packages)
        except CheckoutError as e:
            # Draft stays as it was so the customer can correct and resubmit
            logger.warning("Order submission failed: %s", e.message)
            return self._failure(e)

        self.outcome = result
        self._finish(result)
        response = {"success": True}
        response.update(result.to_dict())
        return response

    def _finish(self, result: OrderResult) -> None:
        if self.selection_repo is not None:
            self.selection_repo.clear(self.session_id)
        if self.draft_repo is not None:
            self.draft_repo.delete(self.session_id)
            if result.is_payment_redirect:
                # Kept so a cancelled payment can re-enter at the payment step
                self.draft_repo.park(
                    result.order_id, self.session_id, self.draft,
                    self.cart_lines, [line.id for line in self.checkout_lines]
                )

    # === Views ===
    def package_view(self, options: PackageOptions) -> Dict[str, Any]:
        package = options.package
        method = self._methods.get(package.id)
        view = options.to_dict()
        slot_count = self.allocator.slot_count(package)
        view.update({
            "selectedMethod": method.value if method else None,
            "lockerSelections": [s.to_dict() for s in self._lockers.get(package.id, [])],
            "lockerSlots": [
                [item.to_dict() for item in slot]
                for slot in self.allocator.allocate(package.lines, slot_count)
            ] if method is not None and method.is_locker else [],
            "useCustomAddress": self.address_override.is_enabled(package.id),
            "customAddress": (self.address_override.address_for(package.id).to_dict()
                              if self.address_override.address_for(package.id) else None),
            "remainingForFreeShipping": to_float(self.partitioner.remaining_for_free_shipping(package)),
            "error": self._package_errors.get(package.id, options.error)
        })
        return view

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "step": int(self.draft.step),
            "stepName": self.draft.step.name.lower(),
            "authenticated": self.authenticated,
            "draft": self.draft.to_dict(),
            "items": [line.to_dict() for line in self.checkout_lines],
            "usedFullCartFallback": self.selector.used_fallback,
            "packages": [self.package_view(options) for options in self.package_options],
            "warnings": list(self.warnings),
            "shippingError": self.shipping_error,
            "addressError": self.address_error,
            "savedAddresses": [a.to_dict() for a in self.saved_addresses],
            "coupon": self.coupons.applied.to_dict() if self.coupons.applied else None,
            "totals": self.totals.to_dict(),
            "shipmentCount": self.order_service.shipment_count(self._build_selections(), self.resolved_packages),
            "lockerPickupHours": self.settings.locker_pickup_hours,
            "submitting": self.submitting,
            "outcome": self.outcome.to_dict() if self.outcome else None
        }
