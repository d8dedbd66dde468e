"""Coupons and marketing campaigns.

Coupons carry an administrative status plus a validity window and usage
limit; their effective state is derived at read time. Campaign status
changes follow `CAMPAIGN_TRANSITIONS` and performance ratios are computed
from the stored counters.
"""

import logging
from typing import Optional

from sqlmodel import Session

from . import models, repositories
from .services import NotFoundError, dump
from .utils.dates import as_naive_utc, utcnow
from .utils.pagination import PageParams, pagination_meta
from .utils.scoring import campaign_metrics, coupon_state
from .utils.text import normalise_code

logger = logging.getLogger("shopadmin.marketing")

CAMPAIGN_TRANSITIONS = {
    models.CampaignStatus.DRAFT: {models.CampaignStatus.ACTIVE, models.CampaignStatus.CANCELLED},
    models.CampaignStatus.ACTIVE: {models.CampaignStatus.PAUSED, models.CampaignStatus.COMPLETED, models.CampaignStatus.CANCELLED},
    models.CampaignStatus.PAUSED: {models.CampaignStatus.ACTIVE, models.CampaignStatus.COMPLETED, models.CampaignStatus.CANCELLED},
    models.CampaignStatus.COMPLETED: set(),
    models.CampaignStatus.CANCELLED: set(),
}


class CouponService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CouponRepository(session)

    @staticmethod
    def serialize(coupon: models.Coupon, now=None) -> dict:
        out = dump(coupon)
        out["is_active"] = coupon.status == models.CouponStatus.ACTIVE
        out["state"] = coupon_state(coupon, now or utcnow())
        return out

    def list(self, params: PageParams, search: str = "", status: Optional[str] = None, coupon_type: Optional[str] = None,
             sort_by: str = "created_at", sort_order: str = "desc") -> dict:
        now = utcnow()
        rows, total = self.repo.list(params, now, search, status, coupon_type, sort_by, sort_order)
        return {"coupons": [self.serialize(c, now) for c in rows], "pagination": pagination_meta(params, total)}

    def _load(self, coupon_id: int) -> models.Coupon:
        coupon = self.repo.get(coupon_id)
        if not coupon:
            raise NotFoundError("coupon not found")
        return coupon

    def _check_code(self, code: str, exclude_id: Optional[int] = None) -> str:
        code = normalise_code(code)
        if not code:
            raise ValueError("code is required")
        existing = self.repo.get_by_code(code)
        if existing and existing.id != exclude_id:
            raise ValueError("coupon code already exists")
        return code

    @staticmethod
    def _check_value(coupon_type: models.CouponType, value: float):
        if value is None or value <= 0:
            raise ValueError("value must be greater than 0")
        if coupon_type == models.CouponType.PERCENTAGE and value > 100:
            raise ValueError("percentage discount cannot exceed 100")

    @staticmethod
    def _check_window(starts_at, expires_at):
        if expires_at is not None and starts_at is not None and expires_at <= starts_at:
            raise ValueError("expires_at must be after starts_at")

    @staticmethod
    def _check_limits(data: dict):
        if data.get("minimum_amount") is not None and data["minimum_amount"] < 0:
            raise ValueError("minimum_amount must not be negative")
        if data.get("maximum_discount") is not None and data["maximum_discount"] <= 0:
            raise ValueError("maximum_discount must be greater than 0")
        if data.get("usage_limit") is not None and data["usage_limit"] < 1:
            raise ValueError("usage_limit must be at least 1")

    def create(self, data: dict) -> dict:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValueError("name is required")
        code = self._check_code(data.get("code"))
        self._check_value(data["type"], data.get("value"))
        self._check_limits(data)
        starts_at = as_naive_utc(data.get("starts_at")) or utcnow()
        expires_at = as_naive_utc(data.get("expires_at"))
        self._check_window(starts_at, expires_at)
        coupon = models.Coupon(
            code=code,
            name=name,
            description=data.get("description") or "",
            type=data["type"],
            value=data["value"],
            minimum_amount=data.get("minimum_amount") or 0.0,
            maximum_discount=data.get("maximum_discount"),
            usage_limit=data.get("usage_limit"),
            status=models.CouponStatus.ACTIVE if data.get("is_active", True) else models.CouponStatus.INACTIVE,
            starts_at=starts_at,
            expires_at=expires_at,
            applicable_products=list(data.get("applicable_products") or []),
            applicable_categories=list(data.get("applicable_categories") or []),
        )
        coupon = self.repo.save(coupon)
        logger.info("coupon %s created", coupon.code)
        return self.serialize(coupon)

    def get(self, coupon_id: int) -> dict:
        return self.serialize(self._load(coupon_id))

    def update(self, coupon_id: int, changes: dict) -> dict:
        coupon = self._load(coupon_id)
        if changes.get("code") is not None:
            coupon.code = self._check_code(changes["code"], exclude_id=coupon.id)
        if changes.get("name") is not None:
            name = changes["name"].strip()
            if not name:
                raise ValueError("name is required")
            coupon.name = name
        new_type = changes.get("type") or coupon.type
        new_value = changes["value"] if changes.get("value") is not None else coupon.value
        self._check_value(new_type, new_value)
        coupon.type, coupon.value = new_type, new_value
        self._check_limits(changes)
        if "starts_at" in changes and changes["starts_at"] is not None:
            coupon.starts_at = as_naive_utc(changes["starts_at"])
        if "expires_at" in changes:
            coupon.expires_at = as_naive_utc(changes["expires_at"])
        self._check_window(coupon.starts_at, coupon.expires_at)
        if changes.get("is_active") is not None:
            coupon.status = models.CouponStatus.ACTIVE if changes["is_active"] else models.CouponStatus.INACTIVE
        for field in ("description", "minimum_amount", "maximum_discount", "usage_limit",
                      "applicable_products", "applicable_categories"):
            if field in changes:
                value = changes[field]
                if value is None and field in ("description", "minimum_amount"):
                    value = "" if field == "description" else 0.0
                if value is None and field.startswith("applicable_"):
                    value = []
                setattr(coupon, field, list(value) if isinstance(value, list) else value)
        return self.serialize(self.repo.save(coupon))

    def delete(self, coupon_id: int) -> dict:
        """Delete a coupon, or deactivate it when orders already used it."""
        coupon = self._load(coupon_id)
        if coupon.usage_count > 0 or self.repo.used_by_orders(coupon.id):
            coupon.status = models.CouponStatus.INACTIVE
            self.repo.save(coupon)
            return {"deleted": False, "deactivated": True, "message": "coupon has been used and was deactivated"}
        self.repo.delete(coupon)
        return {"deleted": True, "deactivated": False, "message": "coupon deleted"}


class CampaignService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CampaignRepository(session)

    @staticmethod
    def serialize(campaign: models.Campaign) -> dict:
        out = dump(campaign)
        out.update(campaign_metrics(
            campaign.impressions, campaign.clicks, campaign.conversions, campaign.spent, campaign.revenue,
        ))
        return out

    def list(self, params: PageParams, search: str = "", status: Optional[str] = None, campaign_type: Optional[str] = None) -> dict:
        rows, total = self.repo.list(params, search, status, campaign_type)
        return {"campaigns": [self.serialize(c) for c in rows], "pagination": pagination_meta(params, total)}

    def _load(self, campaign_id: int) -> models.Campaign:
        campaign = self.repo.get(campaign_id)
        if not campaign:
            raise NotFoundError("campaign not found")
        return campaign

    @staticmethod
    def _check_dates(start, end):
        if start >= end:
            raise ValueError("end_date must be after start_date")

    def create(self, data: dict) -> dict:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValueError("name is required")
        start = as_naive_utc(data["start_date"])
        end = as_naive_utc(data["end_date"])
        self._check_dates(start, end)
        campaign = models.Campaign(
            name=name,
            description=data.get("description") or "",
            type=data["type"],
            status=data.get("status") or models.CampaignStatus.DRAFT,
            start_date=start,
            end_date=end,
            budget=data["budget"],
            target_audience=list(data.get("target_audience") or []),
            channels=list(data.get("channels") or []),
            products=list(data.get("products") or []),
        )
        campaign = self.repo.save(campaign)
        logger.info("campaign %s created", campaign.id)
        return self.serialize(campaign)

    def get(self, campaign_id: int) -> dict:
        return self.serialize(self._load(campaign_id))

    def update(self, campaign_id: int, changes: dict) -> dict:
        campaign = self._load(campaign_id)
        new_status = changes.pop("status", None)
        if new_status is not None and new_status != campaign.status:
            if new_status not in CAMPAIGN_TRANSITIONS[campaign.status]:
                raise ValueError(f"cannot change campaign status from {campaign.status.value} to {new_status.value}")
            campaign.status = new_status
        if changes.get("name") is not None:
            name = changes.pop("name").strip()
            if not name:
                raise ValueError("name is required")
            campaign.name = name
        start = as_naive_utc(changes.pop("start_date", None)) or campaign.start_date
        end = as_naive_utc(changes.pop("end_date", None)) or campaign.end_date
        self._check_dates(start, end)
        campaign.start_date, campaign.end_date = start, end
        for field, value in changes.items():
            if value is None:
                continue
            setattr(campaign, field, list(value) if isinstance(value, list) else value)
        return self.serialize(self.repo.save(campaign))

    def delete(self, campaign_id: int) -> dict:
        """Delete a campaign; an ACTIVE campaign is cancelled instead."""
        campaign = self._load(campaign_id)
        if campaign.status == models.CampaignStatus.ACTIVE:
            campaign.status = models.CampaignStatus.CANCELLED
            self.repo.save(campaign)
            return {"deleted": False, "cancelled": True, "message": "active campaign was cancelled"}
        self.repo.delete(campaign)
        return {"deleted": True, "cancelled": False, "message": "campaign deleted"}
