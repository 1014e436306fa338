"""Vscale provider: scalet and SSH key calls against the Vscale REST API."""

import logging

import httpx

from vscale_machine.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.vscale.io/v1"
ERROR_HEADER = "Vscale-Error-Message"
REQUEST_TIMEOUT = 60


# ── API helpers ───────────────────────────────────────────────────


def _error_detail(resp):
    """Best human-readable reason for a failed response."""
    detail = resp.headers.get(ERROR_HEADER, "")
    if not detail:
        detail = resp.text.strip()
    return detail or resp.reason_phrase


async def _api_request(method, path, api_key, data=None, api_url=DEFAULT_API_URL):
    """Make an authenticated Vscale API request.

    A new ``httpx.AsyncClient`` is built for every call; the API is stateless
    and the token travels in the ``X-Token`` header.

    Returns:
        Parsed JSON body, or ``None`` for empty responses.

    Raises:
        ProviderError: on transport failures and non-2xx responses.
    """
    url = f"{api_url}{path}"
    headers = {"X-Token": api_key, "Content-Type": "application/json;charset=UTF-8"}
    logger.debug(f"{method} {url}")
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.request(method, url, json=data, headers=headers, timeout=REQUEST_TIMEOUT)
    except httpx.HTTPError as e:
        raise ProviderError(f"{method} {path} failed: {e}") from e

    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ProviderError(f"{method} {path} returned {resp.status_code}: {_error_detail(resp)}") from e

    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as e:
        raise ProviderError(f"{method} {path} returned a non-JSON body: {resp.text[:200]}") from e


# ── Scalets ───────────────────────────────────────────────────────


async def create_scalet(api_key, name, make_from, rplan, location, keys, do_start=True, api_url=DEFAULT_API_URL):
    """Create a new scalet.

    POST /scalets
    """
    data = {
        "make_from": make_from,
        "rplan": rplan,
        "do_start": do_start,
        "name": name,
        "keys": list(keys),
        "location": location,
    }
    return await _api_request("POST", "/scalets", api_key, data, api_url)


async def get_scalet(api_key, ctid, api_url=DEFAULT_API_URL):
    """Get a single scalet by its id.

    GET /scalets/{ctid}
    """
    return await _api_request("GET", f"/scalets/{ctid}", api_key, api_url=api_url)


async def start_scalet(api_key, ctid, api_url=DEFAULT_API_URL):
    """PATCH /scalets/{ctid}/start"""
    return await _api_request("PATCH", f"/scalets/{ctid}/start", api_key, {"id": ctid}, api_url)


async def stop_scalet(api_key, ctid, api_url=DEFAULT_API_URL):
    """PATCH /scalets/{ctid}/stop"""
    return await _api_request("PATCH", f"/scalets/{ctid}/stop", api_key, {"id": ctid}, api_url)


async def restart_scalet(api_key, ctid, api_url=DEFAULT_API_URL):
    """PATCH /scalets/{ctid}/restart"""
    return await _api_request("PATCH", f"/scalets/{ctid}/restart", api_key, {"id": ctid}, api_url)


async def delete_scalet(api_key, ctid, api_url=DEFAULT_API_URL):
    """DELETE /scalets/{ctid}"""
    return await _api_request("DELETE", f"/scalets/{ctid}", api_key, api_url=api_url)


def public_address(scalet):
    """Extract the public IPv4 address from a scalet dict, or "" if not yet assigned."""
    if not scalet:
        return ""
    address = scalet.get("public_address") or {}
    return address.get("address") or ""


# ── SSH keys ──────────────────────────────────────────────────────


async def create_ssh_key(api_key, name, public_key, api_url=DEFAULT_API_URL):
    """Register a public key.

    POST /sshkeys
    """
    data = {"name": name, "key": public_key}
    return await _api_request("POST", "/sshkeys", api_key, data, api_url)


async def delete_ssh_key(api_key, key_id, api_url=DEFAULT_API_URL):
    """DELETE /sshkeys/{key_id}"""
    return await _api_request("DELETE", f"/sshkeys/{key_id}", api_key, api_url=api_url)
