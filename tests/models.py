"""Mapped classes and tenancy declarations shared by the test suite."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from multi_tenant.database.base import Base, IntPrimaryKeyMixin, TimestampMixin
from multi_tenant.tenancy import (
    acts_as_tenant,
    belongs_to_tenant,
    belongs_to_tenant_through,
    proxies_to_tenant,
)


# --- Single current tenant ---


class License(IntPrimaryKeyMixin, Base):
    __tablename__ = "licenses"

    description: Mapped[str | None] = mapped_column(String(100))

    clients: Mapped[list[Client]] = relationship("Client", back_populates="license")


class Client(IntPrimaryKeyMixin, Base):
    __tablename__ = "clients"

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str | None] = mapped_column(String(100))
    uuid: Mapped[str | None] = mapped_column(String(36), unique=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    license_id: Mapped[int | None] = mapped_column(ForeignKey("licenses.id"))

    license: Mapped[License | None] = relationship("License", back_populates="clients")


class Widget(IntPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "widgets"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id"))

    client: Mapped[Client | None] = relationship("Client")


class UuidWidget(IntPrimaryKeyMixin, Base):
    __tablename__ = "uuid_widgets"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_uuid: Mapped[str | None] = mapped_column(ForeignKey("clients.uuid"))

    client: Mapped[Client | None] = relationship("Client", foreign_keys=[client_uuid])


class LicensedWidget(IntPrimaryKeyMixin, Base):
    __tablename__ = "licensed_widgets"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    license_id: Mapped[int | None] = mapped_column(ForeignKey("licenses.id"))

    license: Mapped[License | None] = relationship("License")


class Membership(IntPrimaryKeyMixin, Base):
    __tablename__ = "memberships"

    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    client: Mapped[Client | None] = relationship("Client")


class User(IntPrimaryKeyMixin, Base):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    memberships: Mapped[list[Membership]] = relationship("Membership")


# --- Proxy shapes on a second tenant class ---


class Plan(IntPrimaryKeyMixin, Base):
    __tablename__ = "plans"

    description: Mapped[str | None] = mapped_column(String(100))

    # has_one, inverse of belongs_to
    account: Mapped[Account | None] = relationship("Account", back_populates="plan", uselist=False)


class Account(IntPrimaryKeyMixin, Base):
    __tablename__ = "accounts"

    subdomain: Mapped[str] = mapped_column(String(50), nullable=False)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("plans.id"))

    plan: Mapped[Plan | None] = relationship("Plan", back_populates="account")
    seat: Mapped[Seat | None] = relationship("Seat", back_populates="account", uselist=False)
    tickets: Mapped[list[Ticket]] = relationship("Ticket", back_populates="account")


class Seat(IntPrimaryKeyMixin, Base):
    __tablename__ = "seats"

    label: Mapped[str | None] = mapped_column(String(100))
    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"))

    # belongs_to, inverse of has_one
    account: Mapped[Account | None] = relationship("Account", back_populates="seat")


class Ticket(IntPrimaryKeyMixin, Base):
    """belongs_to with a has_many inverse: not a valid proxy."""

    __tablename__ = "tickets"

    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"))

    account: Mapped[Account | None] = relationship("Account", back_populates="tickets")


class Coupon(IntPrimaryKeyMixin, Base):
    """Association without an inverse: not a valid proxy."""

    __tablename__ = "coupons"

    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id"))

    account: Mapped[Account | None] = relationship("Account")


class SeatNote(IntPrimaryKeyMixin, Base):
    __tablename__ = "seat_notes"

    body: Mapped[str] = mapped_column(String(200), nullable=False)
    seat_id: Mapped[int | None] = mapped_column(ForeignKey("seats.id"))

    seat: Mapped[Seat | None] = relationship("Seat")


class Gadget(IntPrimaryKeyMixin, Base):
    """Owned row with no tenant declaration of its own, used for error cases."""

    __tablename__ = "gadgets"

    label: Mapped[str | None] = mapped_column(String(100))
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    user: Mapped[User | None] = relationship("User")


# --- Multiple current tenants ---


class MultiBase(DeclarativeBase):
    pass


class MultiLicense(MultiBase):
    __tablename__ = "m_licenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    description: Mapped[str | None] = mapped_column(String(100))

    clients: Mapped[list[MultiClient]] = relationship("MultiClient", back_populates="license")


class MultiClient(MultiBase):
    __tablename__ = "m_clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    license_id: Mapped[int | None] = mapped_column(ForeignKey("m_licenses.id"))

    license: Mapped[MultiLicense | None] = relationship("MultiLicense", back_populates="clients")


class MultiWidget(MultiBase):
    __tablename__ = "m_widgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("m_clients.id"))

    client: Mapped[MultiClient | None] = relationship("MultiClient")


class MultiMembership(MultiBase):
    __tablename__ = "m_memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("m_clients.id"))
    user_id: Mapped[int] = mapped_column(ForeignKey("m_users.id"), nullable=False)

    client: Mapped[MultiClient | None] = relationship("MultiClient")


class MultiUser(MultiBase):
    __tablename__ = "m_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    memberships: Mapped[list[MultiMembership]] = relationship("MultiMembership")


# --- Declarations (order matters: targets before the bindings that use them) ---

clients = acts_as_tenant(Client, using="code")
licenses = proxies_to_tenant(License, "clients")
widget_binding = belongs_to_tenant(Widget, "client")
uuid_widget_binding = belongs_to_tenant(UuidWidget, "client")
licensed_widget_binding = belongs_to_tenant(LicensedWidget, "license")
membership_binding = belongs_to_tenant(Membership, "client")
user_binding = belongs_to_tenant_through(User, "memberships")

accounts = acts_as_tenant(Account, using="subdomain")
plans = proxies_to_tenant(Plan, "account")
seats = proxies_to_tenant(Seat, "account")
seat_note_binding = belongs_to_tenant(SeatNote, "seat")

multi_clients = acts_as_tenant(MultiClient, using="code", current="multiple")
multi_licenses = proxies_to_tenant(MultiLicense, "clients")
multi_widget_binding = belongs_to_tenant(MultiWidget, "client")
multi_membership_binding = belongs_to_tenant(MultiMembership, "client")
multi_user_binding = belongs_to_tenant_through(MultiUser, "memberships")

TENANT_TYPES = (clients, accounts, multi_clients)
