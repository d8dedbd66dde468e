"""Store settings sections.

Each section has built-in defaults; persisted overrides are shallow
merged on top when settings are read.
"""

import copy
import logging
from typing import Optional

from sqlmodel import Session

from . import models, repositories
from .services import AuditService, NotFoundError
from .utils.dates import utcnow

logger = logging.getLogger("shopadmin.settings")

DEFAULT_SETTINGS = {
    "store": {
        "name": "Online Store",
        "description": "Our online store",
        "email": "contact@store.com",
        "phone": "02-123-4567",
        "address": "Bangkok, Thailand",
        "website": "https://store.com",
        "logo": None,
        "currency": "THB",
        "timezone": "Asia/Bangkok",
        "language": "th",
    },
    "notifications": {
        "email_notifications": True,
        "order_notifications": True,
        "inventory_alerts": True,
        "customer_notifications": False,
        "marketing_emails": False,
        "system_updates": True,
        "low_stock_threshold": 10,
        "email_template": "default",
    },
    "payment": {
        "enable_credit_card": True,
        "enable_bank_transfer": True,
        "enable_promptpay": True,
        "enable_cod": False,
        "payment_methods": [
            {"id": "credit_card", "name": "Credit/Debit card", "enabled": True},
            {"id": "bank_transfer", "name": "Bank transfer", "enabled": True},
            {"id": "promptpay", "name": "PromptPay", "enabled": True},
            {"id": "cod", "name": "Cash on delivery", "enabled": False},
        ],
        "tax_rate": 7.0,
        "shipping_fee": 50,
    },
    "shipping": {
        "free_shipping_threshold": 1000,
        "default_shipping_fee": 50,
        "express_shipping_fee": 100,
        "shipping_zones": [
            {"id": "bangkok", "name": "Bangkok", "fee": 30},
            {"id": "central", "name": "Central", "fee": 50},
            {"id": "north", "name": "North", "fee": 70},
            {"id": "northeast", "name": "Northeast", "fee": 70},
            {"id": "south", "name": "South", "fee": 80},
        ],
        "estimated_delivery": {"standard": "2-3 days", "express": "1-2 days"},
    },
    "security": {
        "enable_two_factor": False,
        "session_timeout": 24,
        "password_policy": {
            "min_length": 8,
            "require_uppercase": True,
            "require_lowercase": True,
            "require_numbers": True,
            "require_special_chars": False,
        },
        "allowed_login_attempts": 5,
        "lockout_duration": 30,
    },
    "api": {
        "enable_api": True,
        "api_keys": [],
        "rate_limit": 1000,
        "webhook_url": "",
    },
}

SECTIONS = tuple(DEFAULT_SETTINGS)


class SettingsService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SettingRepository(session)
        self.audit = AuditService(session)

    def all(self) -> dict:
        stored = self.repo.all()
        out = {}
        for section, defaults in DEFAULT_SETTINGS.items():
            merged = copy.deepcopy(defaults)
            merged.update(stored.get(section, {}))
            out[section] = merged
        return out

    def section(self, name: str) -> dict:
        if name not in DEFAULT_SETTINGS:
            raise NotFoundError(f"unknown settings section: {name}")
        return self.all()[name]

    def update(self, actor: models.User, section: Optional[str], data) -> dict:
        """Shallow-merge `data` into `section` and persist it."""
        if not section or data is None:
            raise ValueError("section and data are required")
        if section not in DEFAULT_SETTINGS:
            raise ValueError(f"invalid section; expected one of: {', '.join(SECTIONS)}")
        if not isinstance(data, dict):
            raise ValueError("data must be an object")
        row = self.repo.get(section)
        if row is None:
            row = models.StoreSetting(section=section, data={})
        merged = dict(row.data or {})
        merged.update(data)
        # reassign so the JSON column is flagged dirty
        row.data = merged
        row.updated_by_id = actor.id
        row.updated_at = utcnow()
        self.repo.save(row)
        self.audit.record(actor.id, "UPDATE", "SETTINGS", section, data)
        logger.info("settings section %s updated by %s", section, actor.id)
        return self.section(section)
