"""
Hosts file templating between sentinel marker lines.
"""
import logging
import os
import re
from typing import List

from .elevation_service import ElevationToken, require_token


class HostsFileService:
    """Maintains one ``# BEGIN <domain>`` / ``# END <domain>`` block in the hosts file."""

    def __init__(self, hosts_file_path: str, domain: str, entries: List[str]):
        self.hosts_file_path = hosts_file_path
        self.domain = domain
        self.entries = list(entries)
        self.logger = logging.getLogger(__name__)

    @property
    def marker_start(self) -> str:
        return f"# BEGIN {self.domain}"

    @property
    def marker_end(self) -> str:
        return f"# END {self.domain}"

    def render_block(self) -> str:
        """The marker-wrapped block of address/hostname lines."""
        return "\n".join([self.marker_start, *self.entries, self.marker_end])

    def apply_block(self, hosts_text: str) -> str:
        """
        Replace an existing block or append a new one.

        Surrounding whitespace of the current text is trimmed before the
        block is applied. Only the first block is replaced; later blocks
        for the same domain are dropped and the lines between them kept.
        """
        hosts = hosts_text.strip()
        replacement = self.render_block()
        pattern = re.compile(
            f"{re.escape(self.marker_start)}.*?{re.escape(self.marker_end)}\n?",
            re.DOTALL,
        )
        replaced = []

        def substitute(match):
            if replaced:
                return ""
            replaced.append(match)
            return replacement + ("\n" if match.group().endswith("\n") else "")

        updated = pattern.sub(substitute, hosts)
        if replaced:
            return updated.rstrip("\n") + "\n"
        if not hosts:
            return f"{replacement}\n"
        return f"{hosts}\n{replacement}\n"

    def update(self, token: ElevationToken) -> str:
        """
        Rewrite the whole hosts file with the development block applied.
        Bytes that are not valid UTF-8 are written back unchanged.

        Returns:
            The rendered block
        """
        require_token(token)

        if os.path.exists(self.hosts_file_path):
            with open(self.hosts_file_path, 'r', encoding='utf-8', errors='surrogateescape') as f:
                current = f.read()
        else:
            current = ""

        updated = self.apply_block(current)
        self.logger.info(f"Updating hosts file at {self.hosts_file_path}")
        self.logger.debug(self.render_block())

        with open(self.hosts_file_path, 'w', encoding='utf-8', errors='surrogateescape') as f:
            f.write(updated)

        return self.render_block()
