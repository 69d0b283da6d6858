"""Push and email wording for a status change, one template per target status."""

from html import escape
from typing import Optional

from pydantic import BaseModel, Field

from shortage_sync.config import APP_BASE_URL
from shortage_sync.models.status import ProductStatus
from shortage_sync.models.sync import ChangeEvent

PUSH_DATA_TYPE = "MEDICATION_STATUS"

STATUS_LABELS = {
    ProductStatus.AVAILABLE: "Disponible",
    ProductStatus.TENSION: "Tension d'approvisionnement",
    ProductStatus.SHORTAGE: "Rupture de stock",
    ProductStatus.UNKNOWN: "Statut inconnu",
}

STATUS_COLORS = {
    ProductStatus.AVAILABLE: "#16a34a",
    ProductStatus.TENSION: "#d97706",
    ProductStatus.SHORTAGE: "#dc2626",
    ProductStatus.UNKNOWN: "#6b7280",
}

_PUSH_TITLES = {
    ProductStatus.AVAILABLE: "{name} est de nouveau disponible",
    ProductStatus.TENSION: "Tension sur {name}",
    ProductStatus.SHORTAGE: "Rupture de stock : {name}",
    ProductStatus.UNKNOWN: "Mise à jour : {name}",
}

_PUSH_BODIES = {
    ProductStatus.AVAILABLE: "Le médicament que vous suivez est à nouveau disponible en pharmacie.",
    ProductStatus.TENSION: "Des difficultés d'approvisionnement sont signalées pour ce médicament.",
    ProductStatus.SHORTAGE: "Ce médicament est actuellement en rupture de stock.",
    ProductStatus.UNKNOWN: "Le statut de ce médicament a changé.",
}


class PushMessage(BaseModel):
    """Title, body and string-only data payload of one multicast push."""

    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)


class EmailContent(BaseModel):
    subject: str
    html: str


def push_data(event: ChangeEvent) -> dict[str, str]:
    return {
        "type": PUSH_DATA_TYPE,
        "productId": str(event.product_id) if event.product_id is not None else "",
        "status": event.status.value,
        "productName": event.product_name,
    }


def build_push_message(event: ChangeEvent) -> PushMessage:
    return PushMessage(
        title=_PUSH_TITLES[event.status].format(name=event.product_name),
        body=_PUSH_BODIES[event.status],
        data=push_data(event),
    )


def build_alert_email(
    event: ChangeEvent,
    user_name: Optional[str] = None,
    base_url: str = APP_BASE_URL,
) -> EmailContent:
    """Subject and HTML body of the alert email sent to one subscriber."""
    label = STATUS_LABELS[event.status]
    color = STATUS_COLORS[event.status]
    name = escape(event.product_name)
    greeting = f"Bonjour {escape(user_name)}," if user_name else "Bonjour,"
    link = f"{base_url}/medications/{event.product_id}" if event.product_id is not None else base_url
    previous = ""
    if event.previous_status is not None:
        previous = f"<p>Statut précédent : {escape(STATUS_LABELS[event.previous_status])}</p>"
    html = f"""<!DOCTYPE html>
<html lang="fr">
  <body style="font-family: Arial, sans-serif; color: #111827;">
    <p>{greeting}</p>
    <p>Le statut d'un médicament que vous suivez a changé.</p>
    <h2 style="margin-bottom: 4px;">{name}</h2>
    <p style="color: {color}; font-weight: bold;">{escape(label)}</p>
    {previous}
    <p><a href="{escape(link, quote=True)}">Voir le détail</a></p>
    <p style="font-size: 12px; color: #6b7280;">
      Vous recevez cet email car vous avez activé les alertes pour ce médicament.
    </p>
  </body>
</html>
"""
    return EmailContent(subject=f"{label} : {event.product_name}", html=html)
