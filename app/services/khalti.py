"""
Khalti ePayment adapter.

Only two endpoints are used: ``epayment/initiate/`` and
``epayment/lookup/``. Khalti works in paisa; the rest of the code base
works in rupees, so conversion happens here and nowhere else.
"""
from dataclasses import dataclass, field

import requests

from app.core import config
from app.core.exceptions import GatewayRejected, GatewayUnreachable
from app.core.logging_config import payment_logger

logger = payment_logger()

COMPLETED = "Completed"


def to_minor_units(amount) -> int:
    return int(round(amount)) * 100


def from_minor_units(amount_minor) -> float:
    return round((amount_minor or 0) / 100, 2)


@dataclass
class GatewayPayment:
    pidx: str
    payment_url: str | None = None
    raw: dict = field(default_factory=dict)


@dataclass
class GatewayLookup:
    pidx: str
    status: str
    total_amount_minor: int = 0
    raw: dict = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @property
    def total_amount(self) -> float:
        return from_minor_units(self.total_amount_minor)


class KhaltiGateway:
    def __init__(self, base_url=None, secret_key=None, timeout=None, session=None):
        self.base_url = (base_url or config.KHALTI_BASE_URL).rstrip("/") + "/"
        self.secret_key = secret_key if secret_key is not None else config.KHALTI_SECRET_KEY
        self.timeout = timeout or config.KHALTI_TIMEOUT
        self.session = session or requests.Session()

    @property
    def headers(self):
        return {
            "Authorization": f"Key {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, headers=self.headers, timeout=self.timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            logger.warning(f"Khalti unreachable | {path} | {e}")
            raise GatewayUnreachable(
                "No response from Khalti. Check your internet or API URL."
            ) from e
        except requests.RequestException as e:
            logger.error(f"Khalti request failed | {path} | {e}")
            raise GatewayUnreachable("Request failed before reaching Khalti.") from e

        try:
            body = response.json()
        except ValueError:
            body = {"detail": response.text}

        if not response.ok:
            logger.warning(f"Khalti rejected | {path} | status={response.status_code} | {body}")
            raise GatewayRejected(details={"status_code": response.status_code, "response": body})

        return body

    # -----------------------------------------------------------------
    # INITIATE
    # -----------------------------------------------------------------
    def initiate(self, amount_minor: int, purchase_order_id: str, purchase_order_name: str,
                 return_url: str, website_url: str) -> GatewayPayment:
        body = self._post("epayment/initiate/", {
            "return_url": return_url,
            "website_url": website_url,
            "amount": amount_minor,
            "purchase_order_id": purchase_order_id,
            "purchase_order_name": purchase_order_name,
        })

        pidx = body.get("pidx")
        if not pidx:
            raise GatewayRejected("Khalti did not return a payment reference", details={"response": body})

        logger.info(f"Khalti initiate | order={purchase_order_id} | pidx={pidx} | amount={amount_minor}")
        return GatewayPayment(pidx=pidx, payment_url=body.get("payment_url"), raw=body)

    # -----------------------------------------------------------------
    # LOOKUP
    # -----------------------------------------------------------------
    def lookup(self, pidx: str) -> GatewayLookup:
        body = self._post("epayment/lookup/", {"pidx": pidx})

        if "status" not in body:
            raise GatewayRejected("Khalti lookup returned no status", details={"response": body})

        return GatewayLookup(
            pidx=pidx,
            status=body["status"],
            total_amount_minor=body.get("total_amount") or 0,
            raw=body,
        )


_gateway = None


def get_gateway():
    global _gateway
    if _gateway is None:
        _gateway = KhaltiGateway()
    return _gateway
