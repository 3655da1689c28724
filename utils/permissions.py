from __future__ import annotations
import discord

def _me_in(channel: discord.TextChannel) -> discord.Permissions | None:
    me = channel.guild.me
    if me is None:
        return None
    return channel.permissions_for(me)

def can_send(channel: discord.TextChannel) -> bool:
    perms = _me_in(channel)
    return bool(perms and perms.send_messages)

def can_purge(channel: discord.TextChannel) -> tuple[bool, str | None]:
    """Return (allowed, missing permission name)."""
    perms = _me_in(channel)
    if not perms or not perms.view_channel:
        return False, "view_channel"
    if not perms.manage_messages:
        return False, "manage_messages"
    return True, None
