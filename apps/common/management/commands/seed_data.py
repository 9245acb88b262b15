"""Management command to load demo professionals and subscription plans."""

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

import yaml
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.billing.models import SubscriptionPlan
from apps.professionals.models import (
    Availability,
    BlockedDate,
    CustomFormField,
    Professional,
)


class Command(BaseCommand):
    help = "Import professional, availability and subscription plan seeds into the database."

    def add_arguments(self, parser):
        parser.add_argument(
            "--professionals-file",
            default="seeds/professionals_seed.json",
            help="Path to professionals seed JSON file.",
        )
        parser.add_argument(
            "--plans-file",
            default="seeds/plans.yaml",
            help="Path to subscription plans YAML file.",
        )

    def handle(self, *args, **options):
        professionals_path = Path(options["professionals_file"])
        plans_path = Path(options["plans_file"])

        if not professionals_path.exists():
            raise CommandError(f"Professionals seed file not found: {professionals_path}")
        if not plans_path.exists():
            raise CommandError(f"Plans seed file not found: {plans_path}")

        with transaction.atomic():
            professional_data = self._load_json(professionals_path)
            plan_data = self._load_yaml(plans_path)

            plans = self._seed_plans(plan_data.get("plans", []))
            professionals = self._seed_professionals(professional_data.get("professionals", []))

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed data imported successfully ({len(professionals)} professionals, {len(plans)} plans)."
            )
        )

    # --------------------------------------------------------------------- utils
    def _load_json(self, path: Path) -> Dict[str, Any]:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        with path.open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh) or {}

    def _seed_plans(self, payloads: List[Dict[str, Any]]) -> List[SubscriptionPlan]:
        plans = []
        for order, payload in enumerate(payloads):
            plan, _ = SubscriptionPlan.objects.update_or_create(
                name=payload["name"],
                defaults={
                    "description": payload.get("description", ""),
                    "price_monthly": Decimal(str(payload["price_monthly"])),
                    "price_annual": Decimal(str(payload["price_annual"])),
                    "is_active": payload.get("is_active", True),
                    "display_order": payload.get("display_order", order),
                },
            )
            plans.append(plan)
        return plans

    def _seed_professionals(self, payloads: List[Dict[str, Any]]) -> Dict[str, Professional]:
        professionals: Dict[str, Professional] = {}
        for payload in payloads:
            deposit = payload.get("deposit_amount")
            professional, _ = Professional.objects.update_or_create(
                slug=payload["slug"],
                defaults={
                    "first_name": payload["first_name"],
                    "last_name": payload["last_name"],
                    "email": payload.get("email", ""),
                    "timezone": payload.get("timezone", "America/Argentina/Buenos_Aires"),
                    "deposit_enabled": payload.get("deposit_enabled", False),
                    "deposit_amount": Decimal(str(deposit)) if deposit is not None else None,
                    "appointment_duration_minutes": payload.get("appointment_duration_minutes", 30),
                },
            )
            professionals[professional.slug] = professional
            self._seed_availability(professional, payload.get("availability", []))
            self._seed_blocked_dates(professional, payload.get("blocked_dates", []))
            self._seed_custom_fields(professional, payload.get("custom_fields", []))
        return professionals

    def _seed_availability(self, professional: Professional, windows: List[Dict[str, Any]]) -> None:
        for window in windows:
            start_time = datetime.strptime(window["start"], "%H:%M").time()
            end_time = datetime.strptime(window["end"], "%H:%M").time()
            if end_time <= start_time:
                self.stderr.write(
                    self.style.WARNING(
                        f"Skipping empty window {window['start']}-{window['end']} for {professional.slug}"
                    )
                )
                continue

            Availability.objects.update_or_create(
                professional=professional,
                day_of_week=window["weekday"],
                slot_number=window.get("slot_number", 1),
                defaults={"start_time": start_time, "end_time": end_time, "is_active": True},
            )

    def _seed_blocked_dates(self, professional: Professional, entries: List[Dict[str, Any]]) -> None:
        for entry in entries:
            BlockedDate.objects.update_or_create(
                professional=professional,
                date=datetime.strptime(entry["date"], "%Y-%m-%d").date(),
                defaults={"reason": entry.get("reason", "")},
            )

    def _seed_custom_fields(self, professional: Professional, fields: List[Dict[str, Any]]) -> None:
        for order, field in enumerate(fields):
            CustomFormField.objects.update_or_create(
                professional=professional,
                field_name=field["field_name"],
                defaults={
                    "field_type": field.get("field_type", "TEXT"),
                    "is_required": field.get("is_required", False),
                    "display_order": field.get("display_order", order),
                    "options": field.get("options", []),
                },
            )
