"""Inline keyboard builders."""
