"""
Truth-or-dare game rooms.

A game room is the `game:{coupleId}` topic. The only server-side game state
is the set of pending spin timers: spin_bottle announces the spin at once and
publishes the outcome after a fixed delay so both clients animate together.
Pending spins are cancelled when the room empties or the server shuts down.
"""

import asyncio
import random
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger
from .envelope import build_event
from .messaging.broadcaster import MessageBroadcaster
from .subscription_manager import SubscriptionManager
from .topics import game_topic, is_game_topic

logger = get_logger(__name__)

SPIN_OUTCOMES = ("truth", "dare")
GAME_READY_PLAYER_COUNT = 2


class GameRoomService:
    """Game room membership side effects and spin scheduling."""

    def __init__(
        self,
        subscriptions: SubscriptionManager,
        broadcaster: MessageBroadcaster,
        spin_duration_ms: int = 3000,
        rng: random.Random | None = None,
    ) -> None:
        self._subscriptions = subscriptions
        self._broadcaster = broadcaster
        self.spin_duration_ms = spin_duration_ms
        self._rng = rng or random.Random()
        self._pending_spins: dict[str, set[asyncio.Task[None]]] = {}
        self.spins_started = 0
        self.spins_completed = 0
        self.spins_cancelled = 0
        subscriptions.add_topic_emptied_listener(self._on_topic_emptied)

    async def join(self, connection_id: str, user_id: str, couple_id: str) -> int:
        """
        Put a connection in a game room.

        Others in the room get partner_joined; once two or more connections are
        present everyone gets game_ready.

        Returns:
            int: Number of connections in the room after joining
        """
        topic_id = game_topic(couple_id)
        await self._subscriptions.subscribe(connection_id, topic_id)

        await self._broadcaster.broadcast_excluding(
            topic_id,
            build_event("partner_joined", coupleId=couple_id, userId=user_id),
            connection_id,
        )

        player_count = self._subscriptions.subscriber_count(topic_id)
        if player_count >= GAME_READY_PLAYER_COUNT:
            await self._broadcaster.broadcast_to_topic(
                topic_id, build_event("game_ready", coupleId=couple_id, players=player_count)
            )
        logger.info("Joined game room", connection_id=connection_id, user_id=user_id, topic_id=topic_id, players=player_count)
        return player_count

    async def start_spin(self, couple_id: str, selected_by: str) -> asyncio.Task[None]:
        """Announce a spin to the room and schedule its outcome."""
        topic_id = game_topic(couple_id)
        await self._broadcaster.broadcast_to_topic(
            topic_id,
            build_event("spin_started", coupleId=couple_id, duration=self.spin_duration_ms, selectedBy=selected_by),
        )

        task = asyncio.create_task(self._finish_spin(couple_id, selected_by), name=f"spin:{topic_id}")
        self._pending_spins.setdefault(topic_id, set()).add(task)
        task.add_done_callback(lambda t: self._forget_spin(topic_id, t))
        self.spins_started += 1
        return task

    def pick_outcome(self) -> dict[str, Any]:
        """Draw a spin outcome: truth or dare, and a bottle angle in [0, 360)."""
        result = SPIN_OUTCOMES[0] if self._rng.random() > 0.5 else SPIN_OUTCOMES[1]
        return {"result": result, "angle": self._rng.randrange(360)}

    async def _finish_spin(self, couple_id: str, selected_by: str) -> None:
        await asyncio.sleep(self.spin_duration_ms / 1000)
        outcome = self.pick_outcome()
        await self._broadcaster.broadcast_to_topic(
            game_topic(couple_id),
            build_event("spin_result", coupleId=couple_id, selectedBy=selected_by, **outcome),
        )
        self.spins_completed += 1

    def _forget_spin(self, topic_id: str, task: asyncio.Task[None]) -> None:
        pending = self._pending_spins.get(topic_id)
        if pending is not None:
            pending.discard(task)
            if not pending:
                del self._pending_spins[topic_id]

        if task.cancelled():
            self.spins_cancelled += 1
            logger.debug("Pending spin cancelled", topic_id=topic_id)
            return
        error = task.exception()
        if error is not None:
            logger.error("Spin result delivery failed", topic_id=topic_id, error=str(error), exc_info=error)

    def pending_spin_count(self, couple_id: str | None = None) -> int:
        if couple_id is not None:
            return len(self._pending_spins.get(game_topic(couple_id), ()))
        return sum(len(tasks) for tasks in self._pending_spins.values())

    def cancel_pending(self, topic_id: str) -> int:
        """Cancel every pending spin for a room. Returns the number cancelled."""
        tasks = self._pending_spins.get(topic_id, set())
        cancelled = 0
        for task in list(tasks):
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    def _on_topic_emptied(self, topic_id: str) -> None:
        if is_game_topic(topic_id):
            cancelled = self.cancel_pending(topic_id)
            if cancelled:
                logger.info("Game room emptied, spins cancelled", topic_id=topic_id, cancelled=cancelled)

    async def shutdown(self) -> None:
        """Cancel all pending spins and wait for them to unwind."""
        tasks = [task for pending in self._pending_spins.values() for task in pending]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Game rooms shut down", cancelled=len(tasks))

    def get_stats(self) -> dict[str, int]:
        return {
            "pending_spins": self.pending_spin_count(),
            "spins_started": self.spins_started,
            "spins_completed": self.spins_completed,
            "spins_cancelled": self.spins_cancelled,
        }
