from flask import Flask, request, jsonify, session
import logging
import uuid

from clients import AddressBookClient, CatalogClient, CouponClient, OrderClient
from core import Settings
from core.checkout_controller import CheckoutController
from database import DatabaseConnection, DraftRepository, SelectionRepository
from models import CartLine

logger = logging.getLogger(__name__)

STATUS_CODES = {
    'validation': 400,
    'collaborator': 502,
    'in_flight': 409,
    'closed': 409
}


def default_clients(settings, auth_token=None, session_id=None):
    """Remote collaborators for one checkout session"""
    options = dict(timeout=settings.api_timeout, auth_token=auth_token, session_id=session_id)
    return {
        'catalog_client': CatalogClient(settings.api_base_url, **options),
        'address_book_client': AddressBookClient(settings.api_base_url, **options),
        'order_client': OrderClient(settings.api_base_url, **options),
        'coupon_client': CouponClient(settings.api_base_url, **options)
    }


def respond(result):
    if result.get('success', True):
        return jsonify(result), 200
    return jsonify(result), STATUS_CODES.get(result.get('error_type'), 400)


def create_app(settings=None, clients_factory=default_clients):
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.secret_key = settings.secret_key

    db = DatabaseConnection(settings.db_path)
    drafts = DraftRepository(db)
    selections = SelectionRepository(db)
    controllers = {}

    def session_id():
        if 'session_id' not in session:
            session['session_id'] = str(uuid.uuid4())
        return session['session_id']

    def auth_token():
        header = request.headers.get('Authorization', '')
        return header[len('Bearer '):] if header.startswith('Bearer ') else None

    def build_controller(sid, cart_lines, selected_ids, authenticated, draft=None):
        return CheckoutController(
            session_id=sid,
            cart_lines=cart_lines,
            selected_item_ids=selected_ids,
            authenticated=authenticated,
            settings=settings,
            draft_repository=drafts,
            selection_repository=selections,
            draft=draft,
            **clients_factory(settings, auth_token(), sid)
        )

    def current():
        return controllers.get(session.get('session_id'))

    def not_started():
        return jsonify({'success': False, 'error': 'Checkout has not been started'}), 404

    def parse_cart(data):
        return [CartLine.from_dict(item) for item in data.get('cart', [])]

    @app.route('/api/checkout/start', methods=['POST'])
    def start_checkout():
        """Create the checkout for this session and run the eager fetches"""
        data = request.get_json(silent=True) or {}
        try:
            cart_lines = parse_cart(data)
        except (KeyError, ValueError) as e:
            return jsonify({'success': False, 'error': f'Invalid cart: {e}'}), 400
        if not cart_lines:
            return jsonify({'success': False, 'error': 'Your cart is empty'}), 400

        sid = session_id()
        if 'selectedItemIds' in data:
            selections.save(sid, data['selectedItemIds'] or [])
        selected_ids = selections.load(sid)
        authenticated = bool(data.get('authenticated')) or auth_token() is not None

        controller = build_controller(sid, cart_lines, selected_ids, authenticated, drafts.load(sid))
        controllers[sid] = controller
        logger.info("Checkout started for session %s with %d cart lines", sid, len(cart_lines))
        return respond(controller.start())

    @app.route('/api/checkout', methods=['GET'])
    def get_checkout():
        controller = current()
        if controller is None:
            return not_started()
        return jsonify(controller.snapshot())

    @app.route('/api/checkout/cart', methods=['PUT'])
    def update_cart():
        controller = current()
        if controller is None:
            return not_started()
        try:
            cart_lines = parse_cart(request.get_json(silent=True) or {})
        except (KeyError, ValueError) as e:
            return jsonify({'success': False, 'error': f'Invalid cart: {e}'}), 400
        return respond(controller.update_cart(cart_lines))

    @app.route('/api/checkout/guest', methods=['POST'])
    def choose_guest():
        controller = current()
        if controller is None:
            return not_started()
        return respond(controller.choose_guest())

    @app.route('/api/checkout/address', methods=['POST'])
    def submit_address():
        controller = current()
        if controller is None:
            return not_started()
        data = request.get_json(silent=True) or {}
        if data.get('savedAddressId'):
            return respond(controller.use_saved_address(data['savedAddressId']))
        return respond(controller.submit_address(data))

    @app.route('/api/checkout/shipping/refresh', methods=['POST'])
    def refresh_shipping():
        controller = current()
        if controller is None:
            return not_started()
        return respond(controller.refresh_shipping())

    @app.route('/api/checkout/shipping/method', methods=['POST'])
    def select_shipping_method():
        controller = current()
        if controller is None:
            return not_started()
        data = request.get_json(silent=True) or {}
        return respond(controller.select_shipping_method(data.get('packageId', ''), data.get('method', '')))

    @app.route('/api/checkout/shipping/locker', methods=['POST'])
    def select_locker():
        controller = current()
        if controller is None:
            return not_started()
        data = request.get_json(silent=True) or {}
        try:
            slot_index = int(data.get('slotIndex', 0))
        except (TypeError, ValueError):
            return jsonify({'success': False, 'error': 'slotIndex must be an integer', 'error_type': 'validation'}), 400
        return respond(controller.select_locker(
            data.get('packageId', ''),
            slot_index,
            data.get('code', ''),
            data.get('address', '')
        ))

    @app.route('/api/checkout/shipping/custom-address', methods=['POST'])
    def custom_address():
        """Toggle the override, or update one field when `field` is given"""
        controller = current()
        if controller is None:
            return not_started()
        data = request.get_json(silent=True) or {}
        package_id = data.get('packageId', '')
        if 'field' in data:
            return respond(controller.update_custom_address(package_id, data['field'], data.get('value', '')))
        return respond(controller.toggle_custom_address(package_id))

    @app.route('/api/checkout/shipping', methods=['POST'])
    def submit_shipping():
        controller = current()
        if controller is None:
            return not_started()
        return respond(controller.submit_shipping())

    @app.route('/api/checkout/payment', methods=['POST'])
    def submit_payment():
        controller = current()
        if controller is None:
            return not_started()
        data = request.get_json(silent=True) or {}
        return respond(controller.submit_payment(data.get('method', '')))

    @app.route('/api/checkout/back', methods=['POST'])
    def back():
        controller = current()
        if controller is None:
            return not_started()
        return respond(controller.back())

    @app.route('/api/checkout/edit/<int:step>', methods=['POST'])
    def edit_step(step):
        controller = current()
        if controller is None:
            return not_started()
        return respond(controller.edit_step(step))

    @app.route('/api/checkout/consents', methods=['POST'])
    def set_consents():
        controller = current()
        if controller is None:
            return not_started()
        data = request.get_json(silent=True) or {}
        return respond(controller.set_consents(data.get('acceptTerms'), data.get('acceptNewsletter')))

    @app.route('/api/checkout/coupon', methods=['POST', 'DELETE'])
    def coupon():
        controller = current()
        if controller is None:
            return not_started()
        if request.method == 'DELETE':
            return respond(controller.remove_coupon())
        data = request.get_json(silent=True) or {}
        return respond(controller.apply_coupon(data.get('code', '')))

    @app.route('/api/checkout/place-order', methods=['POST'])
    def place_order():
        controller = current()
        if controller is None:
            return not_started()
        result = controller.place_order()
        if result.get('success'):
            # Finished checkouts leave the registry; a cancelled payment resumes from the parked draft
            controllers.pop(session.get('session_id'), None)
        return respond(result)

    @app.route('/api/checkout/payment-cancelled/<order_id>', methods=['POST'])
    def payment_cancelled(order_id):
        """Re-enter the checkout at the payment step after a cancelled payment"""
        sid = session_id()
        parked = drafts.load_parked(order_id, sid)
        if parked is None:
            return jsonify({'success': False, 'error': f'No checkout found for order {order_id}'}), 404

        data = request.get_json(silent=True) or {}
        try:
            cart_lines = parse_cart(data) or parked.cart_lines
        except (KeyError, ValueError) as e:
            return jsonify({'success': False, 'error': f'Invalid cart: {e}'}), 400
        if not cart_lines:
            return jsonify({'success': False, 'error': 'Your cart is empty'}), 400

        controller = build_controller(
            sid, cart_lines,
            parked.selected_item_ids,
            authenticated=not parked.draft.is_guest,
            draft=parked.draft
        )
        drafts.delete(drafts.parked_key(order_id))
        controllers[sid] = controller
        logger.info("Payment for order %s cancelled, resuming checkout", order_id)
        return respond(controller.resume_after_payment_cancel())

    @app.route('/health')
    def health():
        """Health check endpoint"""
        return jsonify({'status': 'ok', 'message': 'Checkout service is running!'})

    return app


if __name__ == '__main__':
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    app = create_app(settings)

    print("=== Storefront Checkout Server ===")
    print(f"Starting server on http://localhost:{settings.port}")
    print("Press Ctrl+C to stop")

    app.run(
        host='0.0.0.0',
        port=settings.port,
        debug=settings.debug
    )
