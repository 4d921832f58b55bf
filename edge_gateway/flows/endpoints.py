"""Downstream service URLs. ``domain`` is appended to every service host."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Endpoints:
    catalogue: str
    tags: str
    carts: str
    orders: str
    customers: str
    addresses: str
    cards: str
    login: str
    register: str

    @classmethod
    def from_domain(cls, domain: str = "") -> Endpoints:
        catalogue = f"http://catalogue{domain}"
        user = f"http://user{domain}"
        return cls(
            catalogue=catalogue,
            tags=f"{catalogue}/tags",
            carts=f"http://carts{domain}/carts",
            orders=f"http://orders{domain}",
            customers=f"{user}/customers",
            addresses=f"{user}/addresses",
            cards=f"{user}/cards",
            login=f"{user}/login",
            register=f"{user}/register",
        )
