"""FastAPI dependencies exposing the components wired by create_app."""

from fastapi import Request

from controller.services.integrity_auditor import IntegrityAuditor
from controller.services.week_linker import WeekAssetLinker
from storage.file_catalog import FileCatalog
from storage.range_streamer import RangeStreamer


def get_catalog(request: Request) -> FileCatalog:
    return request.app.state.catalog


def get_linker(request: Request) -> WeekAssetLinker:
    return request.app.state.linker


def get_streamer(request: Request) -> RangeStreamer:
    return request.app.state.streamer


def get_auditor(request: Request) -> IntegrityAuditor:
    return request.app.state.auditor
