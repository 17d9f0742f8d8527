"""Live counters for the dashboard.

Learn: These numbers are kept in memory so the stats endpoint never
touches the database. They are seeded from the withdrawals table at
startup, then moved by WithdrawalService as events arrive. A restart
re-seeds them, so drift never outlives the process.
"""

import asyncio
import platform
import time
from dataclasses import dataclass, field

import psutil

TERMINAL_STATUSES = ("completed", "rejected")


@dataclass
class StatsTracker:
    total: int = 0
    pending: int = 0
    successful: int = 0
    started_at: float = field(default_factory=time.time)

    def seed(self, total: int, pending: int, successful: int) -> None:
        self.total = total
        self.pending = pending
        self.successful = successful

    def record_new(self) -> None:
        self.total += 1
        self.pending += 1

    def record_status(self, status: str) -> None:
        """Apply an admin decision on a pending withdrawal."""
        if status not in TERMINAL_STATUSES:
            return
        self.pending = max(0, self.pending - 1)
        if status == "completed":
            self.successful += 1

    def snapshot(self) -> dict:
        """Counters under the keys existing dashboards read (startTime in ms)."""
        return {
            "totalWithdrawals": self.total,
            "pendingWithdrawals": self.pending,
            "successfulWithdrawals": self.successful,
            "startTime": int(self.started_at * 1000),
        }

    def reset(self) -> None:
        self.total = self.pending = self.successful = 0
        self.started_at = time.time()


async def system_snapshot() -> dict:
    """CPU/memory/uptime of the host and this process.

    cpu_percent blocks for its sampling interval, so it runs in a thread.
    """
    cpu = await asyncio.to_thread(psutil.cpu_percent, 0.1)
    memory = psutil.virtual_memory()
    process = psutil.Process()
    return {
        "cpu": round(cpu, 2),
        "memory": round(memory.percent, 2),
        "uptime": round(time.time() - process.create_time(), 1),
        "platform": platform.system().lower(),
    }


# Shared by the API and the lifespan seeding
stats = StatsTracker()
