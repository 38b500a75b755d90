"""Cogs package - Slash command modules"""
