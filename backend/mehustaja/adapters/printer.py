"""Videojet 6330 pouch label printer over raw TCP.

Protocol:
  - One CR-terminated command per connection.  After writing, the client
    lingers briefly, half-closes, and collects whatever the printer says
    until it closes the socket or the wait runs out.
  - ``SLA|<job>|VarField01=<customer>|VarField02=<date>|`` selects the
    job and fills both variable fields in one go; ``PRN`` prints.
  - Older firmware does not accept the one-line form.  Anything other
    than silence or an ``ACK`` reply falls back to ``SLA|<job>``, one
    ``VAR|`` per field, then ``PRN``.

The printer often stays silent even when it did the work, so silence on
the one-line path is reported as ``assumed_ok``, kept apart from a real
``confirmed`` so callers can be stricter later.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

CR = "\r"
_ACK = re.compile(r"ACK", re.IGNORECASE)
# Field separator and line terminators of the command protocol
_UNSAFE = re.compile(r"[|\r\n]")


class PrintOutcome(str, enum.Enum):
    CONFIRMED = "confirmed"
    ASSUMED_OK = "assumed_ok"
    FAILED = "failed"


@dataclass
class PrintResult:
    outcome: PrintOutcome
    host: str
    port: int
    sent: dict[str, str] = field(default_factory=dict)
    replies: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not PrintOutcome.FAILED


class PrinterError(Exception):
    """The printer could not be reached or dropped the connection."""


class VideojetPrinter:
    def __init__(
        self,
        host: str,
        port: int = 3003,
        job: str = "Mehustaja",
        connect_timeout: float = 6.0,
        linger: float = 0.2,
    ):
        self.host = host
        self.port = port
        self.job = job
        self.connect_timeout = connect_timeout
        self.linger = linger

    async def send_line(self, line: str) -> str:
        """Send one command and return the trimmed reply ('' for silence)."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.connect_timeout
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise PrinterError(f"connect timeout to {self.host}:{self.port}") from e
        except OSError as e:
            raise PrinterError(f"cannot connect to {self.host}:{self.port}: {e}") from e

        chunks: list[bytes] = []
        try:
            writer.write((line + CR).encode("ascii", errors="replace"))
            await writer.drain()
            await asyncio.sleep(self.linger)
            if writer.can_write_eof():
                writer.write_eof()

            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    chunk = await asyncio.wait_for(reader.read(1024), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                if not chunk:
                    break
                chunks.append(chunk)
        except OSError as e:
            raise PrinterError(f"connection to {self.host}:{self.port} failed: {e}") from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        return b"".join(chunks).decode("ascii", errors="replace").strip()

    async def print_pouch(self, customer: str, production_date: str) -> PrintResult:
        """Print one pouch label with the customer name and production date."""
        if not customer or not production_date:
            raise ValueError("customer and production_date are required")
        if _UNSAFE.search(customer) or _UNSAFE.search(production_date):
            raise ValueError("customer and production_date must not contain '|' or line breaks")

        result = PrintResult(outcome=PrintOutcome.FAILED, host=self.host, port=self.port)
        one_line = f"SLA|{self.job}|VarField01={customer}|VarField02={production_date}|"

        try:
            result.sent["sla"] = one_line
            result.replies["sla"] = await self.send_line(one_line)

            if not result.replies["sla"] or _ACK.search(result.replies["sla"]):
                result.sent["prn"] = "PRN"
                result.replies["prn"] = await self.send_line("PRN")
                acked = any(_ACK.search(r) for r in result.replies.values())
                result.outcome = PrintOutcome.CONFIRMED if acked else PrintOutcome.ASSUMED_OK
                return result

            logger.info("Printer rejected one-line SLA (%r), using split form", result.replies["sla"])
            result.sent = {
                "sla": f"SLA|{self.job}",
                "var1": f"VAR|VarField01={customer}",
                "var2": f"VAR|VarField02={production_date}",
                "prn": "PRN",
            }
            result.replies = {}
            for key, line in result.sent.items():
                result.replies[key] = await self.send_line(line)

            acked = any(_ACK.search(r) for r in result.replies.values())
            result.outcome = PrintOutcome.CONFIRMED if acked else PrintOutcome.FAILED
        except PrinterError as e:
            logger.warning("Pouch print failed: %s", e)
            result.outcome = PrintOutcome.FAILED
            result.error = str(e)

        return result
