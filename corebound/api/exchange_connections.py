"""Exchange connections API: link, list, verify and remove exchange accounts."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import CoreboundConfig
from ..credentials import encrypt_credential
from ..database.connection import get_db
from ..database.repositories import ExchangeConnectionRepository
from ..exceptions import CredentialError, ExchangeAccountNotFoundError, ExchangeError, NotFoundError
from ..providers.factory import venue_display_name
from ..providers.hyperliquid import HyperliquidVerifier
from ..validation import ValidationError, validate_private_key, validate_wallet_address
from ..web.auth import CurrentUser, get_config, get_current_user
from .deps import VerifierFactory, get_verifier_factory, get_wallet_checker

router = APIRouter(prefix="/api/exchange-connections", tags=["exchange-connections"])
logger = logging.getLogger(__name__)


class ConnectionCreate(BaseModel):
    """Hyperliquid needs wallet_address + key_material_encrypted; Coinbase api_key + api_secret.

    ``key_material_encrypted`` carries the plaintext private key over TLS;
    it is encrypted server-side before storage.
    """

    venue: str = "hyperliquid"
    wallet_address: Optional[str] = None
    key_material_encrypted: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None


@router.get("")
async def list_connections(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    connections = ExchangeConnectionRepository(db).list_for_user(user.id)
    return {"connections": [c.to_dict() for c in connections]}


async def _check_wallet(checker: HyperliquidVerifier, wallet_address: str) -> Optional[JSONResponse]:
    try:
        await checker.get_account_state(wallet_address)
    except ExchangeAccountNotFoundError as e:
        return JSONResponse({"error": e.message}, status_code=400)
    except ExchangeError as e:
        logger.error(f"Hyperliquid verification failed: {e.message}")
        return JSONResponse(
            {
                "error": "Could not connect to Hyperliquid. Please check your wallet address and try again.",
                "details": e.message,
            },
            status_code=400,
        )
    finally:
        await checker.close()
    return None


@router.post("", status_code=201)
async def create_connection(
    body: ConnectionCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: CoreboundConfig = Depends(get_config),
    checker: HyperliquidVerifier = Depends(get_wallet_checker),
):
    """Verify (Hyperliquid) and store an exchange connection, one per venue."""
    repo = ExchangeConnectionRepository(db)

    if body.venue == "coinbase":
        if not body.api_key or not body.api_secret:
            raise ValidationError("Missing required fields: api_key, api_secret")
        connection = repo.create(
            user.id,
            "coinbase",
            api_key=body.api_key.strip(),
            api_secret_encrypted=encrypt_credential(body.api_secret.strip(), config),
        )
        return {"connection": connection.to_dict(), "verified": False}

    if not body.wallet_address or not body.key_material_encrypted:
        raise ValidationError("Missing required fields: wallet_address, key_material_encrypted")
    private_key = validate_private_key(body.key_material_encrypted)
    wallet_address = validate_wallet_address(body.wallet_address)

    failure = await _check_wallet(checker, wallet_address)
    if failure is not None:
        return failure

    connection = repo.create(
        user.id,
        body.venue or "hyperliquid",
        wallet_address=wallet_address,
        key_material_encrypted=encrypt_credential(private_key, config),
    )
    return {"connection": connection.to_dict(), "verified": True}


@router.delete("/{connection_id}")
async def delete_connection(
    connection_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not ExchangeConnectionRepository(db).delete(connection_id, user.id):
        raise NotFoundError("Connection not found")
    return {"success": True}


@router.post("/{connection_id}/verify")
async def verify_connection(
    connection_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    config: CoreboundConfig = Depends(get_config),
    verifier_factory: VerifierFactory = Depends(get_verifier_factory),
):
    """Re-check stored credentials against the exchange.

    Decryption failures answer 500; exchange failures answer 200 with
    ``success: false`` so the settings page can show the reason inline.
    """
    connection = ExchangeConnectionRepository(db).get(connection_id, user.id)
    if connection is None:
        raise NotFoundError("Connection not found")

    venue = venue_display_name(connection.venue)
    try:
        verifier = verifier_factory(connection, config)
    except CredentialError as e:
        secret_name = "API secret" if connection.venue == "coinbase" else "private key"
        return JSONResponse(
            {"success": False, "error": f"Failed to decrypt {secret_name}", "details": e.message},
            status_code=500,
        )

    try:
        return await verifier.verify(connection)
    except ExchangeError as e:
        logger.error(f"{venue} verification failed: {e.message}", extra={'user_id': user.id})
        return {"success": False, "error": f"Failed to connect to {venue}", "details": e.message}
    finally:
        await verifier.close()
