# frontend/api_client.py
import logging
import os

import requests

logger = logging.getLogger("pocketledger-client")

API_BASE = os.environ.get("POCKETLEDGER_API", "http://localhost:5000")


class ApiError(Exception):
    """Non-2xx response or connection failure; status is 0 when no response arrived."""

    def __init__(self, status, message):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


def safe_json(resp):
    try:
        return resp.json()
    except ValueError:
        return None


class ApiClient:
    def __init__(self, base_url=None, token=None, timeout=10, session=None):
        self.base_url = (base_url or API_BASE).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(self, method, path, json=None, params=None):
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = self.base_url + path
        try:
            response = self.session.request(method.upper(), url, headers=headers, json=json,
                                            params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Connection failed: {method} {path}: {e}")
            raise ApiError(0, "Connection failed") from e

        body = safe_json(response)
        if not response.ok:
            message = body.get("error") if isinstance(body, dict) else None
            logger.warning(f"{method} {path} failed with {response.status_code}")
            raise ApiError(response.status_code, message or "Something went wrong")
        return body

    # ---------------- Auth ----------------
    def register(self, email, password, name=None):
        body = self.request("POST", "/auth/register", json={"email": email, "password": password, "name": name})
        self.token = body["access_token"]
        return body

    def login(self, email, password):
        body = self.request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = body["access_token"]
        return body

    # ---------------- Transactions ----------------
    def list_transactions(self, **filters):
        return self.request("GET", "/transactions", params=filters or None)

    def get_transaction(self, tx_id):
        return self.request("GET", f"/transactions/{tx_id}")

    def create_transaction(self, payload):
        return self.request("POST", "/transactions", json=payload)

    def update_transaction(self, tx_id, payload):
        return self.request("PUT", f"/transactions/{tx_id}", json=payload)

    def delete_transaction(self, tx_id):
        return self.request("DELETE", f"/transactions/{tx_id}")

    # ---------------- Budgets ----------------
    def list_budgets(self):
        return self.request("GET", "/budgets")

    def get_budget(self, budget_id):
        return self.request("GET", f"/budgets/{budget_id}")

    def create_budget(self, payload):
        return self.request("POST", "/budgets", json=payload)

    def upsert_budget(self, payload):
        return self.request("PUT", "/budgets", json=payload)

    def update_budget(self, budget_id, payload):
        return self.request("PUT", f"/budgets/{budget_id}", json=payload)

    def delete_budget(self, budget_id):
        return self.request("DELETE", f"/budgets/{budget_id}")

    # ---------------- Recurring ----------------
    def list_recurring(self):
        return self.request("GET", "/recurring-transactions")

    def get_recurring(self, recurring_id):
        return self.request("GET", f"/recurring-transactions/{recurring_id}")

    def create_recurring(self, payload):
        return self.request("POST", "/recurring-transactions", json=payload)

    def update_recurring(self, recurring_id, payload):
        return self.request("PUT", f"/recurring-transactions/{recurring_id}", json=payload)

    def delete_recurring(self, recurring_id):
        return self.request("DELETE", f"/recurring-transactions/{recurring_id}")

    # ---------------- Savings goals ----------------
    def list_goals(self):
        return self.request("GET", "/savings-goals")

    def get_goal(self, goal_id):
        return self.request("GET", f"/savings-goals/{goal_id}")

    def create_goal(self, payload):
        return self.request("POST", "/savings-goals", json=payload)

    def update_goal(self, goal_id, payload):
        return self.request("PUT", f"/savings-goals/{goal_id}", json=payload)

    def delete_goal(self, goal_id):
        return self.request("DELETE", f"/savings-goals/{goal_id}")

    def contribute_to_goal(self, goal_id, amount):
        return self.request("POST", f"/savings-goals/{goal_id}/contributions", json={"amount": amount})

    # ---------------- Alerts ----------------
    def list_alerts(self, unread_only=False):
        return self.request("GET", "/alerts", params={"unreadOnly": "true" if unread_only else "false"})

    def create_alert(self, payload):
        return self.request("POST", "/alerts", json=payload)

    def mark_alerts_read(self, alert_ids=None, mark_all=False):
        if mark_all:
            return self.request("PATCH", "/alerts", json={"markAllAsRead": True})
        return self.request("PATCH", "/alerts", json={"alertIds": list(alert_ids or [])})

    def delete_alert(self, alert_id):
        return self.request("DELETE", "/alerts", params={"id": alert_id})

    def delete_all_alerts(self):
        return self.request("DELETE", "/alerts", params={"deleteAll": "true"})

    # ---------------- Reports ----------------
    def overview(self):
        return self.request("GET", "/reports/overview")
