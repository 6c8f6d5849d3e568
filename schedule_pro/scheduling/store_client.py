from datetime import datetime
from typing import Dict, List, Optional
import logging

import requests

from .appointment import Appointment, User, parse_appointments, parse_users
from .error_utils import FetchError
from .time_window import format_query_bound

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "http://localhost:5163/api"


class AppointmentStore:
    """
    Client for the remote appointment API. Owns nothing locally, every call goes over HTTP.

    Any non-2xx response or transport failure raises FetchError. No retries are attempted here.
    """

    def __init__(self, base_url: str = DEFAULT_API_BASE, token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, failure: str, params=None, json_body=None):
        """
        Internal function to send one request to the store.
        *failure* is the message used for the FetchError if the call doesn't succeed.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.info("Store request: %s %s", method, url)
        try:
            response = self.session.request(method, url, headers=self._headers(), params=params, json=json_body)
        except requests.RequestException as e:
            logger.error("%s: %s", failure, e)
            raise FetchError(failure) from e

        logger.info("Store response code: %s", response.status_code)
        if not 200 <= response.status_code < 300:
            logger.error("%s: HTTP %s", failure, response.status_code)
            raise FetchError(failure, status=response.status_code)
        return response

    def _json(self, response, failure: str):
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("%s: response body is not JSON", failure)
            raise FetchError(failure, status=response.status_code) from e

    def query_appointments(self, user_id, window_start: datetime, window_end: datetime) -> List[Appointment]:
        """
        Appointments of *user_id* overlapping the window. Bounds are sent as naive local time, seconds precision.
        Records with a missing or unparsable start/end are dropped.
        """
        failure = "Failed to fetch appointments by date"
        params = {"startDate": format_query_bound(window_start)}
        if window_end is not None:
            params["endDate"] = format_query_bound(window_end)
        response = self._request("GET", f"Appointments/{user_id}/bydate", failure, params=params)
        return parse_appointments(self._json(response, failure) or [])

    def get_appointments(self, user_id) -> List[Appointment]:
        failure = "Failed to fetch appointments"
        response = self._request("GET", f"Appointments/{user_id}", failure)
        return parse_appointments(self._json(response, failure) or [])

    def create_appointment(self, payload: dict) -> Appointment:
        failure = "Failed to create appointment"
        response = self._request("POST", "appointments", failure, json_body=payload)
        return self._single(self._json(response, failure), failure)

    def update_appointment(self, appointment_id, user_id, payload: dict) -> Appointment:
        # Full replace, not a partial patch
        failure = "Failed to update appointment"
        response = self._request("PUT", f"appointments/{appointment_id}/{user_id}", failure, json_body=payload)
        return self._single(self._json(response, failure), failure)

    def delete_appointment(self, appointment_id, user_id) -> bool:
        self._request("DELETE", f"appointments/{appointment_id}/{user_id}", "Failed to delete appointment")
        return True

    def list_users(self) -> List[User]:
        failure = "Failed to fetch users"
        response = self._request("GET", "users", failure)
        return parse_users(self._json(response, failure) or [])

    @staticmethod
    def _single(record, failure: str) -> Appointment:
        appointments = parse_appointments([record])
        if not appointments:
            logger.error("%s: store returned a malformed appointment", failure)
            raise FetchError(failure)
        return appointments[0]
