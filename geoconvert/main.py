import json
import os
import zipfile
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from .config import settings
from .converters import parse_utm_inputs, parse_wgs84_inputs, to_utm, to_wgs84
from .detection import needs_manual_mapping
from .exceptions import FormatError, MappingIncompleteError
from .export import export_history_json, generate_csv_content, generate_geojson
from .history import ConversionHistory
from .logger import log_conversion, logger
from .pipeline import run_batch_conversion, run_bulk_entries
from .schemas import (
    BatchResult,
    BulkConversionRequest,
    ColumnMapping,
    ConversionRecord,
    ConversionType,
    CoordinateType,
    ImportPreviewResponse,
    ParsedTable,
    TitleUpdate,
    ToUTMRequest,
    ToWGS84Request,
)
from .tabular import decode_upload, parse_excel, parse_tabular

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
LEGACY_EXCEL_EXTENSION = ".xls"
PREVIEW_ROWS = 100


def _history(request: Request) -> ConversionHistory:
    return request.app.state.history


async def _read_table(file: UploadFile, sheet_name: Optional[str] = None) -> ParsedTable:
    """Read an uploaded CSV or Excel file into a parsed table"""
    contents = await file.read()
    if len(contents) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    filename = (file.filename or "").lower()
    if filename.endswith(LEGACY_EXCEL_EXTENSION):
        raise HTTPException(status_code=400, detail="Legacy .xls workbooks are not supported, save the file as .xlsx")

    try:
        if filename.endswith(EXCEL_EXTENSIONS):
            return parse_excel(contents, sheet_name)
        return parse_tabular(decode_upload(contents))
    except FormatError as e:
        logger.warning(f"Could not parse {file.filename}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)
    except (ValueError, zipfile.BadZipFile) as e:
        # pandas / openpyxl reject files that are not workbooks
        logger.warning(f"Could not read {file.filename}: {str(e)}")
        raise HTTPException(status_code=400, detail=f"File processing error: {str(e)}")


def _parse_mapping(column_mapping: Optional[str]) -> Optional[ColumnMapping]:
    if not column_mapping:
        return None
    try:
        return ColumnMapping(**json.loads(column_mapping))
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid column mapping: {str(e)}")


def create_app(history: Optional[ConversionHistory] = None) -> FastAPI:
    app = FastAPI(title=settings.app_name, version="1.0.0")
    app.state.history = history if history is not None else ConversionHistory()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/convert/to-wgs84", response_model=ConversionRecord)
    async def convert_to_wgs84(body: ToWGS84Request, request: Request):
        """Convert a single UTM coordinate to WGS84"""
        utm = parse_utm_inputs(body.easting, body.northing, body.zone, body.hemisphere)
        if utm is None:
            raise HTTPException(status_code=400, detail="Invalid UTM input")

        wgs84 = to_wgs84(utm)
        record = ConversionRecord.create(ConversionType.UTM_TO_WGS84, utm, wgs84, body.title)
        _history(request).add(record)

        log_conversion(
            original_coords=utm.model_dump(mode="json"),
            converted_coords=wgs84.model_dump(mode="json"),
            conversion_type=record.type.value,
            user_agent=request.headers.get("user-agent", "Unknown")
        )
        return record

    @app.post("/convert/to-utm", response_model=ConversionRecord)
    async def convert_to_utm(body: ToUTMRequest, request: Request):
        """Convert a single WGS84 coordinate to UTM"""
        wgs84 = parse_wgs84_inputs(body.latitude, body.longitude)
        if wgs84 is None:
            raise HTTPException(status_code=400, detail="Invalid WGS84 input")

        utm = to_utm(wgs84, body.target_zone)
        record = ConversionRecord.create(ConversionType.WGS84_TO_UTM, wgs84, utm, body.title)
        _history(request).add(record)

        log_conversion(
            original_coords=wgs84.model_dump(mode="json"),
            converted_coords=utm.model_dump(mode="json"),
            conversion_type=record.type.value,
            user_agent=request.headers.get("user-agent", "Unknown")
        )
        return record

    @app.post("/import/preview", response_model=ImportPreviewResponse)
    async def import_preview(
        file: UploadFile = File(...),
        sheet_name: Optional[str] = Form(None),
    ):
        """Parse an upload and report the detected coordinate type and columns"""
        table = await _read_table(file, sheet_name)
        return ImportPreviewResponse(
            filename=file.filename or "",
            headers=table.headers,
            row_count=len(table.rows),
            detected_coordinate_type=table.detected_coordinate_type,
            detected_column_mapping=table.detected_column_mapping,
            field_status=table.field_status,
            worksheet_name=table.worksheet_name,
            preview_rows=table.rows[:PREVIEW_ROWS],
        )

    @app.post("/convert/batch")
    async def convert_batch(
        request: Request,
        file: UploadFile = File(...),
        coordinate_type: Optional[CoordinateType] = Form(None),
        column_mapping: Optional[str] = Form(None),
        title: Optional[str] = Form(None),
        sheet_name: Optional[str] = Form(None),
        output_format: str = Form("json"),
    ):
        """Batch conversion of a CSV or Excel upload"""
        logger.info(f"Batch conversion started for file: {file.filename}, format: {output_format}")
        if output_format not in ("json", "csv", "geojson"):
            raise HTTPException(status_code=400, detail=f"Unsupported output format: {output_format}")

        table = await _read_table(file, sheet_name)
        mapping = _parse_mapping(column_mapping)

        chosen_type = coordinate_type or table.detected_coordinate_type
        if chosen_type is None:
            raise HTTPException(
                status_code=422,
                detail=f"Could not detect coordinate columns. Found columns: {table.headers}"
            )
        if mapping is None and needs_manual_mapping(table, chosen_type):
            raise HTTPException(
                status_code=422,
                detail=f"A column mapping is required to convert as {chosen_type.value}"
            )

        try:
            result = run_batch_conversion(table, chosen_type, mapping, title)
        except MappingIncompleteError as e:
            raise HTTPException(status_code=422, detail=e.message)

        if result.converted_count == 0:
            raise HTTPException(
                status_code=422,
                detail={"message": "No valid data", "errors": [err.model_dump() for err in result.errors]}
            )

        _history(request).extend(result.records)

        if output_format == "csv":
            content = generate_csv_content(result.augmented_rows, result.output_headers)
            base_name = os.path.splitext(file.filename or "upload")[0]
            return Response(
                content=content.encode('utf-8'),
                media_type='text/csv; charset=utf-8',
                headers={'Content-Disposition': f'attachment; filename="converted_{base_name}.csv"'}
            )
        if output_format == "geojson":
            return JSONResponse(content=generate_geojson(result), media_type="application/geo+json")
        return JSONResponse(content=result.model_dump(mode="json"))

    @app.post("/convert/bulk", response_model=BatchResult)
    async def convert_bulk(body: BulkConversionRequest, request: Request):
        """Convert manually entered coordinates"""
        result = run_bulk_entries(body.entries, body.coordinate_type)
        if result.converted_count == 0:
            raise HTTPException(
                status_code=422,
                detail={"message": "No valid entries", "errors": [err.model_dump() for err in result.errors]}
            )
        _history(request).extend(result.records)
        return result

    @app.get("/history", response_model=List[ConversionRecord])
    async def list_history(request: Request):
        return _history(request).records()

    @app.get("/history/export")
    async def export_history(request: Request):
        history = _history(request)
        if not len(history):
            raise HTTPException(status_code=404, detail="No history to export")
        return Response(
            content=export_history_json(history.records()),
            media_type="application/json",
            headers={'Content-Disposition': 'attachment; filename="geoconvert-history.json"'}
        )

    @app.patch("/history/{record_id}", response_model=ConversionRecord)
    async def rename_history_item(record_id: str, body: TitleUpdate, request: Request):
        record = _history(request).rename(record_id, body.title)
        if record is None:
            raise HTTPException(status_code=404, detail="Record not found")
        return record

    @app.delete("/history/{record_id}", status_code=204)
    async def delete_history_item(record_id: str, request: Request):
        if not _history(request).remove(record_id):
            raise HTTPException(status_code=404, detail="Record not found")
        return Response(status_code=204)

    @app.delete("/history", status_code=204)
    async def clear_history(request: Request):
        _history(request).clear()
        return Response(status_code=204)

    return app


app = create_app()
