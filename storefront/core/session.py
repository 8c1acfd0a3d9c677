"""Shopping session management"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .config import Settings
from ..services.availability import AvailabilityReconciler, use_availability
from ..services.cart_store import CartStore
from ..services.checkout import CheckoutMachine
from ..services.contracts import InventoryService, OrderService, PaymentProcessor
from ..services.order_submitter import OrderSubmitter
from ..services.pricing import PricingRules

logger = logging.getLogger(__name__)


@dataclass
class ShoppingSession:
    """Cart and checkout state owned by one browser session"""
    session_id: str
    created_at: datetime
    updated_at: datetime
    cart: CartStore
    reconciler: AvailabilityReconciler
    badges: AvailabilityReconciler
    checkout: CheckoutMachine

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    async def close(self) -> None:
        await self.reconciler.stop()
        await self.badges.stop()
        self.checkout.detach()


class SessionManager:
    """Creates and tracks shopping sessions"""

    def __init__(
        self,
        inventory: InventoryService,
        orders: OrderService,
        payment_processor: PaymentProcessor,
        settings: Settings,
    ):
        self.inventory = inventory
        self.orders = orders
        self.payment_processor = payment_processor
        self.settings = settings
        self.pricing = PricingRules.from_settings(settings)
        self.sessions: dict[str, ShoppingSession] = {}

    def create_session(self) -> ShoppingSession:
        """Create a new session"""
        cart = CartStore(rules=self.pricing)
        reconciler = AvailabilityReconciler(
            self.inventory,
            refresh_interval=self.settings.cart_refresh_interval,
        )
        submitter = OrderSubmitter(self.orders, self.payment_processor, settings=self.settings)
        checkout = CheckoutMachine(cart, reconciler, submitter, settings=self.settings)
        cart.subscribe(lambda store: reconciler.track(store.items))
        badges = use_availability(
            self.inventory,
            refresh_interval=self.settings.badge_refresh_interval,
        )

        now = datetime.now(timezone.utc)
        session = ShoppingSession(
            session_id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            cart=cart,
            reconciler=reconciler,
            badges=badges,
            checkout=checkout,
        )

        if self.settings.availability_polling:
            try:
                reconciler.start()
                badges.start()
            except RuntimeError:
                logger.warning("No running event loop; availability polling not started")

        self.sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id}")
        return session

    def get_session(self, session_id: str) -> Optional[ShoppingSession]:
        """Get session by ID"""
        session = self.sessions.get(session_id)
        if session:
            session.touch()
        return session

    def get_or_create_session(self, session_id: Optional[str] = None) -> ShoppingSession:
        """Get existing session or create new one"""
        if session_id and session_id in self.sessions:
            return self.get_session(session_id)
        return self.create_session()

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session"""
        session = self.sessions.pop(session_id, None)
        if not session:
            return False
        await session.close()
        return True

    async def cleanup_old_sessions(self, max_age_hours: Optional[int] = None) -> int:
        """Remove sessions idle for longer than max_age_hours"""
        max_age_hours = max_age_hours or self.settings.session_max_age_hours
        now = datetime.now(timezone.utc)
        old_sessions = [
            sid for sid, session in self.sessions.items()
            if (now - session.updated_at).total_seconds() > max_age_hours * 3600
        ]
        for sid in old_sessions:
            await self.delete_session(sid)
        return len(old_sessions)

    async def cleanup_periodically(self, interval: Optional[float] = None) -> None:
        """Remove idle sessions every ``interval`` seconds until cancelled"""
        interval = interval or self.settings.session_cleanup_interval
        while True:
            await asyncio.sleep(interval)
            removed = await self.cleanup_old_sessions()
            if removed:
                logger.info(f"Removed {removed} idle sessions")

    async def close(self) -> None:
        """Stop every session's background work"""
        await asyncio.gather(*(session.close() for session in self.sessions.values()))
        self.sessions.clear()
