"""
Wallet ledger: the only code that changes ``Wallet.balance``.

``debit`` and ``credit`` run inside the caller's unit of work. The caller
must hold ``locks.wallet(user_id)`` until it commits; the wallet row itself
is re-read with ``SELECT ... FOR UPDATE`` so concurrent writers in other
processes queue up behind it on PostgreSQL.
"""
from decimal import Decimal

from farmshare.errors import InsufficientFunds, NotFound, ValidationError
from farmshare.extensions import db
from farmshare.models import Wallet
from farmshare.services.lifecycle import to_money


class WalletService:
    @staticmethod
    def create_wallet(user_id):
        wallet = Wallet(user_id=user_id, balance=Decimal("0.00"))
        db.session.add(wallet)
        db.session.flush()
        return wallet

    @staticmethod
    def get_wallet(user_id, lock=False):
        query = Wallet.query.filter_by(user_id=user_id)
        if lock:
            query = query.with_for_update().populate_existing()
        wallet = query.first()
        if not wallet:
            raise NotFound("Wallet not found.")
        return wallet

    @staticmethod
    def get_balance(user_id):
        return to_money(WalletService.get_wallet(user_id).balance)

    @staticmethod
    def _positive_amount(amount):
        try:
            value = to_money(amount)
        except ArithmeticError as exc:
            raise ValidationError("Amount must be a number.") from exc
        if not value.is_finite() or value <= 0:
            raise ValidationError("Amount must be positive.")
        return value

    @staticmethod
    def debit(user_id, amount):
        value = WalletService._positive_amount(amount)
        wallet = WalletService.get_wallet(user_id, lock=True)
        previous = to_money(wallet.balance)
        if previous < value:
            raise InsufficientFunds(required=value, available=previous)
        wallet.balance = previous - value
        db.session.flush()
        return wallet, previous, to_money(wallet.balance)

    @staticmethod
    def credit(user_id, amount):
        value = WalletService._positive_amount(amount)
        wallet = WalletService.get_wallet(user_id, lock=True)
        previous = to_money(wallet.balance)
        wallet.balance = previous + value
        db.session.flush()
        return wallet, previous, to_money(wallet.balance)
