"""Shared configuration, logging and response helpers for the builder"""
