"""
Tenant configuration lookups: feature flags, branding, limits.

The service resolves its tenant once (``tenant_id`` if given and known,
otherwise the first stored tenant, otherwise a built-in default) and
serves every query from that record.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Dict, Optional

from mock_db import MockDatabase
from models import (
    Branding,
    TenantConfig,
    TenantFeatures,
    TenantIntegrations,
    TenantLimits,
    TenantSettings,
)

logger = logging.getLogger(__name__)

API_RESOURCES = ("products", "orders", "customers", "inventory", "analytics")


def default_tenant(domain: str = "localhost", created_at: str = "") -> TenantConfig:
    return TenantConfig(
        id="default",
        name="Buena Default",
        domain=domain,
        branding=Branding(
            colors={
                "primary": "#2563eb",
                "secondary": "#64748b",
                "accent": "#f59e0b",
                "background": "#ffffff",
                "foreground": "#1f2937",
            },
            fonts={"heading": "Inter", "body": "Inter"},
        ),
        features=TenantFeatures(recurring_orders=True, advanced_analytics=True),
        integrations=TenantIntegrations(),
        limits=TenantLimits(),
        settings=TenantSettings(tax_settings={"default_rate": 0.08, "tax_inclusive": False}),
        created_at=created_at,
        updated_at=created_at,
    )


class TenantService:
    def __init__(self, db: MockDatabase, tenant_id: Optional[str] = None) -> None:
        self.db = db
        self.tenant_id = tenant_id
        self._current: Optional[TenantConfig] = None

    def get_current_tenant(self) -> TenantConfig:
        if self._current is None:
            tenant = self.db.get_tenant_by_id(self.tenant_id) if self.tenant_id else None
            if tenant is None and self.tenant_id:
                logger.warning(f"Tenant {self.tenant_id} not found; using the first configured tenant")
            if tenant is None:
                tenants = self.db.get_tenants()
                tenant = tenants[0] if tenants else default_tenant(created_at=self.db.now_iso())
            self._current = tenant
        return self._current

    def is_feature_enabled(self, feature: str) -> bool:
        return bool(getattr(self.get_current_tenant().features, feature, False))

    def get_branding(self) -> Branding:
        return self.get_current_tenant().branding

    def get_settings(self) -> TenantSettings:
        return self.get_current_tenant().settings

    def get_limits(self) -> TenantLimits:
        return self.get_current_tenant().limits

    def tax_rate(self) -> float:
        return float(self.get_settings().tax_settings.get("default_rate", 0.08))

    def has_integration(self, integration_type: str, value: Optional[str] = None) -> bool:
        integration = getattr(self.get_current_tenant().integrations, integration_type, None)
        if isinstance(integration, list):
            return value in integration if value else len(integration) > 0
        return bool(integration)

    def branding_variables(self) -> Dict[str, Any]:
        """CSS custom properties, favicon and document title for the tenant."""
        branding = self.get_branding()
        variables = {f"--{name}": value for name, value in branding.colors.items()}
        variables["--font-heading"] = branding.fonts.get("heading", "")
        variables["--font-body"] = branding.fonts.get("body", "")
        return {
            "css_variables": variables,
            "favicon": branding.favicon,
            "title": f"{self.get_current_tenant().name} - Retail Platform",
        }

    def get_api_endpoints(self) -> Dict[str, str]:
        tenant_id = self.get_current_tenant().id
        return {name: f"/api/{tenant_id}/{name}" for name in API_RESOURCES}

    def validate_limits(self, resource_type: str, current_count: int) -> Dict[str, Any]:
        limits = self.get_limits()
        if resource_type not in {f.name for f in fields(limits)}:
            raise ValueError(f"Unknown limit: {resource_type}")
        limit = getattr(limits, resource_type)
        return {
            "valid": current_count < limit,
            "limit": limit,
            "remaining": max(0, limit - current_count),
        }

    def get_feature_flags(self) -> TenantFeatures:
        return self.get_current_tenant().features

    def update_tenant(self, updates: Dict[str, Any]) -> TenantConfig:
        """Apply top-level updates; nested sections may be given as dicts."""
        merged = self.get_current_tenant().to_dict()
        merged.update(updates)
        merged["updated_at"] = self.db.now_iso()
        updated = TenantConfig.from_dict(merged)
        self._current = updated
        for idx, tenant in enumerate(self.db.tenants):
            if tenant.id == updated.id:
                self.db.tenants[idx] = updated
                break
        logger.info(f"Tenant {updated.id} updated", extra={"tenant_id": updated.id})
        return updated
