"""
HTTP 接口：在进程内保存一个看板会话，提供上传、查询、类目调整、费率表编辑和导出。
启动: python api_server.py
"""
from dataclasses import asdict
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from sellerdash.config import setup_logging
from sellerdash.errors import SellerDashError, UnknownProductError
from sellerdash.models import FeeCategory
from sellerdash.presentation import ViewOptions
from sellerdash.service import DashboardService, ExportService, ImportService

app = FastAPI(title="SellerDash")

session = DashboardService()
import_service = ImportService()
export_service = ExportService()


class RowsRequest(BaseModel):
    rows: List[Dict[str, Any]]


class CategoryRequest(BaseModel):
    category_id: str


class RateRequest(BaseModel):
    rate: Optional[float] = None


class ProductRequest(BaseModel):
    name: Optional[str] = None
    cost_price: Optional[float] = None
    stock_a: Optional[int] = None
    stock_b: Optional[int] = None
    sales_30d: Optional[int] = None
    price_list: Optional[float] = None
    price_market: Optional[float] = None
    fee_category_id: Optional[str] = None


class FeeCategoryItem(BaseModel):
    id: str
    name: str
    rate: float


class ConfigRequest(BaseModel):
    shop_variant: Optional[str] = None
    service_fee_enabled: Optional[bool] = None
    low_stock_threshold: Optional[float] = None


def _raise_http(e: SellerDashError):
    if isinstance(e, UnknownProductError):
        raise HTTPException(status_code=404, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def _load(source: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        products = session.load_source(source, rows)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"code": 0, "data": {"source": source, "rows": len(rows), "products": len(products)}}


# ==========================================
# 数据源
# ==========================================

@app.post("/upload/{source}")
async def upload_source(source: str, file: UploadFile = File(...)):
    content = await file.read()
    try:
        rows = import_service.import_file(content, source, file.filename or "")
    except SellerDashError as e:
        _raise_http(e)
    return _load(source, rows)


@app.post("/sources/{source}")
def post_rows(source: str, req: RowsRequest):
    return _load(source, req.rows)


@app.get("/templates/{source}")
def get_template(source: str):
    try:
        content, file_name = import_service.get_template(source)
    except SellerDashError as e:
        _raise_http(e)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


# ==========================================
# 商品
# ==========================================

@app.get("/products")
def list_products(
    search: str = "",
    category: Optional[str] = None,
    status: str = "all",
    group: bool = False,
    sort: str = "profit",
    order: str = "asc",
):
    options = ViewOptions(
        text=search,
        category_id=category,
        status=status,
        group_variants=group,
        sort_field=sort,
        sort_order=order,
        low_stock_threshold=session.config.low_stock_threshold,
    )
    try:
        rows = session.view(options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"code": 0, "data": [asdict(p) for p in rows]}


@app.get("/products/{product_id}/fees")
def product_fees(product_id: str):
    try:
        product = session.get_product(product_id)
        breakdown = session.fee_breakdown(product_id)
    except SellerDashError as e:
        _raise_http(e)
    return {"code": 0, "data": {"product": asdict(product), "fees": asdict(breakdown)}}


@app.put("/products/{product_id}/category")
def set_category(product_id: str, req: CategoryRequest):
    try:
        product = session.set_category(product_id, req.category_id)
    except SellerDashError as e:
        _raise_http(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"code": 0, "data": asdict(product)}


@app.put("/products/{product_id}/rate")
def set_rate(product_id: str, req: RateRequest):
    try:
        product = session.set_custom_rate(product_id, req.rate)
    except SellerDashError as e:
        _raise_http(e)
    return {"code": 0, "data": asdict(product)}


@app.put("/products/{product_id}")
def save_product(product_id: str, req: ProductRequest):
    values = req.model_dump(exclude_none=True)
    fee_category_id = values.pop("fee_category_id", None)
    try:
        product = session.save_product(product_id, fee_category_id=fee_category_id, **values)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"code": 0, "data": asdict(product)}


# ==========================================
# 费率表与设置
# ==========================================

@app.get("/fee_tables/{shop_variant}")
def get_fee_table(shop_variant: str):
    table = session.registry.get_table(shop_variant)
    return {"code": 0, "data": [asdict(c) for c in table]}


@app.put("/fee_tables/{shop_variant}")
def update_fee_table(shop_variant: str, items: List[FeeCategoryItem]):
    categories = [FeeCategory(id=i.id, name=i.name, rate=i.rate) for i in items]
    try:
        table = session.update_fee_table(shop_variant, categories)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"code": 0, "data": [asdict(c) for c in table]}


@app.get("/config")
def get_config():
    return {"code": 0, "data": session.config.to_dict()}


@app.put("/config")
def update_config(req: ConfigRequest):
    try:
        if req.shop_variant is not None:
            session.set_shop_variant(req.shop_variant)
        if req.service_fee_enabled is not None:
            session.set_service_fee(req.service_fee_enabled)
        if req.low_stock_threshold is not None:
            session.set_low_stock_threshold(req.low_stock_threshold)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"code": 0, "data": session.config.to_dict()}


# ==========================================
# 看板与导出
# ==========================================

@app.get("/stats")
def get_stats():
    return {"code": 0, "data": {**session.stats(), **session.chart_data()}}


@app.get("/summary")
def get_summary():
    return {"code": 0, "data": session.ai_summary()}


@app.get("/export/csv")
def export_csv():
    content, file_name = export_service.get_csv_bytes(session)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@app.get("/export/xlsx")
def export_xlsx():
    data, file_name = export_service.get_excel_bytes(session)
    return Response(
        content=data.getvalue(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


if __name__ == "__main__":
    setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)
