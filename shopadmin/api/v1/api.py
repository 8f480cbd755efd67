"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from shopadmin.api.v1.endpoints import auth, mfa, security, users

api_router = APIRouter()

# Auth (register, login, logout, passwords, sessions, bootstrap)
api_router.include_router(auth.router)

# MFA setup / enable / disable
api_router.include_router(mfa.router)

# User administration & grants
api_router.include_router(users.router)

# Security log, lockout, session administration
api_router.include_router(security.router)
