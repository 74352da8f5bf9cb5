from farmshare.extensions import db
from farmshare.models.base import PKType, TimestampMixin


class Wallet(TimestampMixin, db.Model):
    __tablename__ = "wallets"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    user = db.relationship("User", back_populates="wallet")

    __table_args__ = (db.CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),)
