#!/usr/bin/env python3
"""
Connection Test Script

Run this to verify MongoDB, the LLM endpoint and (optionally) a GitHub token.
Usage: python scripts/test_connections.py [github_token]
"""
import sys

from app.db.mongodb import test_mongo_connection
from app.services.github_client import GitHubClient, GitHubAPIError
from app.services.llm_client import get_llm_client
from app.core.config import get_settings


def main():
    settings = get_settings()
    print("=" * 50)
    print("PLACEMENT PLATFORM - CONNECTION TEST")
    print("=" * 50)

    # Test MongoDB
    print("\n[1] Testing MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if test_mongo_connection():
        print("    MongoDB: CONNECTED")
    else:
        print("    MongoDB: FAILED")

    # Test LLM (only if API key is set)
    print("\n[2] Testing LLM API...")
    client = get_llm_client()
    if client.is_configured:
        print(f"    Base URL: {settings.llm_base_url}")
        print(f"    Model: {settings.llm_model}")
        if client.test_connection():
            print("    LLM: CONNECTED")
        else:
            print("    LLM: FAILED")
    else:
        print("    LLM: API key not configured (fallbacks will be used)")

    # Test GitHub token (only if one is passed)
    print("\n[3] Testing GitHub API...")
    if len(sys.argv) > 1:
        try:
            user = GitHubClient(sys.argv[1]).get_authenticated_user()
            print(f"    GitHub: CONNECTED as {user.get('login')}")
        except GitHubAPIError as e:
            print(f"    GitHub: FAILED ({e})")
    else:
        print("    GitHub: no token given (skip)")

    if not settings.github_token_encryption_key:
        print("    Warning: GITHUB_TOKEN_ENCRYPTION_KEY is not set; GitHub connect will fail")

    print("\n" + "=" * 50)
    print("Connection test complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
