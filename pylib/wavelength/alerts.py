'''
User-visible alert surfaces. Whichever is available is detected at startup;
there may be none, and that is not an error.
'''

import asyncio
import html
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

from wavelength.config import SyncConfig

UNOSEND_API = 'https://www.unosend.co/api/v1/emails'


@dataclass
class Alert:
    '''A platform alert. Alerts sharing a tag replace each other.'''

    title: str
    body: str
    tag: str
    icon: str = ''
    badge: str = ''
    renotify: bool = True
    data: dict[str, Any] = field(default_factory=dict)


class AlertSurface(ABC):
    '''Somewhere an alert can be raised.'''

    name: str = ''

    @abstractmethod
    async def show(self, alert: Alert) -> None:
        '''Raise the alert, replacing any active alert with the same tag.'''


class DesktopAlertSurface(AlertSurface):
    '''Desktop notification via notify-send.'''

    name = 'desktop'

    def __init__(self, command: str = 'notify-send') -> None:
        self.command = command

    @staticmethod
    def available(command: str = 'notify-send') -> bool:
        return shutil.which(command) is not None

    async def show(self, alert: Alert) -> None:
        args = [
            self.command,
            '--app-name', alert.title,
            # Stack tags make a repeat alert replace the previous one
            '--hint', f'string:x-dunst-stack-tag:{alert.tag}',
            '--hint', f'string:x-canonical-private-synchronous:{alert.tag}',
        ]
        if alert.icon:
            args += ['--icon', alert.icon]
        args += [alert.title, alert.body]
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise RuntimeError(f'{self.command} exited {proc.returncode}: {stderr.decode(errors="replace").strip()}')


class EmailAlertSurface(AlertSurface):
    '''Alert by email through the Unosend API.'''

    name = 'email'

    def __init__(self, to: list[str], api_key: str, from_addr: str | None = None) -> None:
        self.to = to
        self.api_key = api_key
        self.from_addr = from_addr or os.environ.get('UNOSEND_FROM', 'wavelength@localhost')

    async def show(self, alert: Alert) -> None:
        # Constant subject per tag so mail clients thread repeat alerts
        payload = {
            'from': self.from_addr,
            'to': self.to,
            'subject': f'[{alert.title}] {alert.tag}',
            'html': f'<p>{html.escape(alert.body)}</p>',
            'text': alert.body,
        }
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.post(
                UNOSEND_API,
                headers={'Authorization': f'Bearer {self.api_key}', 'Content-Type': 'application/json'},
                json=payload,
            )
            resp.raise_for_status()


class ConsoleAlertSurface(AlertSurface):
    '''Prints alerts as rich panels. Keeps the latest alert per tag.'''

    name = 'console'

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)
        self.active: dict[str, Alert] = {}

    async def show(self, alert: Alert) -> None:
        replaced = alert.tag in self.active
        self.active[alert.tag] = alert
        if replaced and not alert.renotify:
            return
        self.console.print(Panel(alert.body, title=alert.title))


def detect_alert_surface(config: SyncConfig) -> AlertSurface | None:
    '''
    The configured alert surface, or None when it cannot
    be used here. 'auto' prefers desktop, then email.
    '''
    channel = config.alert_channel
    api_key = os.environ.get('UNOSEND_API_KEY')
    if channel in ('auto', 'desktop') and DesktopAlertSurface.available():
        return DesktopAlertSurface()
    if channel in ('auto', 'email') and api_key and config.email_to:
        return EmailAlertSurface(to=config.email_to, api_key=api_key)
    if channel == 'console':
        return ConsoleAlertSurface()
    return None
