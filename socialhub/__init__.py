"""SocialHub backend services."""
