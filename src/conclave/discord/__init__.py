"""Discord integration for The Conclave Realm.

REST calls (OAuth token exchange, profile and guild-membership lookups,
auto-invite), embed builders for the form relays, and the handlers for
events pushed by the community bot.

Optional: without DISCORD_BOT_TOKEN / DISCORD_GUILD_ID, membership checks
are skipped and every user is treated as a non-member.
"""
