"""Test helpers: fake harness, fake clock, chunked byte streams."""
