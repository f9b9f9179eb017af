"""
Report Engine — printable deliverables for a project workspace.

Outputs:
  - Cost Estimation PDF (A4, branded header, BOQ rows + grand total)
  - Inspection Report PDF (asset rows with status, quantity and position)
  - Ledger Excel workbook (sheets: Cost Estimation / Inspection)

All outputs saved to DOWNLOAD_DIR and the path returned for FileResponse.
Formatting is delegated to reportlab and xlsxwriter; values come from the
ledgers untouched.
"""
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from app.config import CURRENCY, DOWNLOAD_DIR
from app.services.ledger_engine import Ledger
from app.services.quantity_engine import format_money, format_quantity

logger = logging.getLogger("sitebook-report")

DEFAULT_COMPANY_NAME = "SITEBOOK ENGINEERING"
DEFAULT_COMPANY_SUB = "Contracts  |  Inspections  |  Cost Estimation"


def _hex_to_rgb(hex_color: str) -> tuple:
    """Convert '#RRGGBB' to (r, g, b) floats 0-1."""
    h = hex_color.lstrip("#")
    if len(h) != 6:
        return (0.08, 0.08, 0.12)
    return (int(h[0:2], 16) / 255, int(h[2:4], 16) / 255, int(h[4:6], 16) / 255)


# ── PDF helpers ───────────────────────────────────────────────────────────────

def _draw_header(c, page_w, page_h, company_name: str, company_sub: str, theme_rgb: tuple):
    from reportlab.lib.units import cm
    c.setFillColorRGB(*theme_rgb)
    c.rect(0, page_h - 3*cm, page_w, 3*cm, fill=1, stroke=0)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 13)
    c.drawString(1.5*cm, page_h - 1.5*cm, company_name)
    c.setFont("Helvetica", 8)
    c.drawString(1.5*cm, page_h - 2.1*cm, company_sub)
    c.setStrokeColorRGB(0.58, 0.64, 0.72)
    c.setLineWidth(2)
    c.line(0, page_h - 3*cm, page_w, page_h - 3*cm)
    c.setLineWidth(1)
    c.setStrokeColorRGB(0, 0, 0)


def _draw_footer(c, page_w, page_num: int, company_name: str):
    from reportlab.lib.units import cm
    c.setFillColorRGB(0.5, 0.5, 0.5)
    c.setFont("Helvetica", 7)
    c.drawString(1.5*cm, 0.8*cm, company_name)
    c.drawRightString(page_w - 1.5*cm, 0.8*cm, f"Page {page_num}")
    c.setStrokeColorRGB(0.7, 0.7, 0.7)
    c.line(1.5*cm, 1.2*cm, page_w - 1.5*cm, 1.2*cm)


def _clip(text: str, width: int) -> str:
    text = text or ""
    return text if len(text) <= width else text[: width - 1] + "…"


class ReportEngine:

    def __init__(self, settings: Optional[Dict[str, Any]] = None, output_dir: Optional[str] = None):
        s = settings or {}
        self.company_name = s.get("company_name", DEFAULT_COMPANY_NAME)
        self.company_sub = s.get("report_header_text", DEFAULT_COMPANY_SUB)
        self.theme_rgb = _hex_to_rgb(s.get("theme_color_hex", "#002147"))
        self.currency = s.get("currency", CURRENCY)
        self.output_dir = output_dir or DOWNLOAD_DIR

    def _path(self, filename: str) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, filename)

    # ── Tabular PDF ───────────────────────────────────────────────────────────

    def _table_pdf(
        self,
        path: str,
        title: str,
        subtitle: str,
        columns: List[Tuple[str, float, str]],
        rows: List[List[str]],
        footer_rows: List[Tuple[str, str]],
    ) -> str:
        """
        columns: (header, x offset in cm, "l" | "r" alignment).
        Rows are paginated; the header block repeats on every page.
        """
        from reportlab.pdfgen import canvas as rl_canvas
        from reportlab.lib.pagesizes import A4, landscape
        from reportlab.lib.units import cm

        page_w, page_h = landscape(A4)
        c = rl_canvas.Canvas(path, pagesize=(page_w, page_h))

        def new_page() -> float:
            _draw_header(c, page_w, page_h, self.company_name, self.company_sub, self.theme_rgb)
            _draw_footer(c, page_w, c.getPageNumber(), self.company_name)
            y = page_h - 4.2*cm
            c.setFillColorRGB(0.08, 0.08, 0.12)
            c.setFont("Helvetica-Bold", 15)
            c.drawString(1.5*cm, y, title)
            y -= 0.6*cm
            c.setFont("Helvetica", 8)
            c.setFillColorRGB(0.4, 0.4, 0.4)
            c.drawString(1.5*cm, y, subtitle)
            y -= 0.8*cm
            c.setFont("Helvetica-Bold", 8)
            c.setFillColorRGB(0.08, 0.08, 0.12)
            for header, x, align in columns:
                draw = c.drawRightString if align == "r" else c.drawString
                draw(x*cm, y, header)
            y -= 0.25*cm
            c.line(1.5*cm, y, page_w - 1.5*cm, y)
            y -= 0.45*cm
            c.setFont("Helvetica", 8)
            return y

        try:
            y = new_page()
            for row in rows:
                if y < 2.5*cm:
                    c.showPage()
                    y = new_page()
                c.setFillColorRGB(0.2, 0.2, 0.2)
                for (header, x, align), value in zip(columns, row):
                    draw = c.drawRightString if align == "r" else c.drawString
                    draw(x*cm, y, value)
                y -= 0.45*cm

            if footer_rows:
                if y < 3.5*cm:
                    c.showPage()
                    y = new_page()
                y -= 0.2*cm
                c.line(1.5*cm, y + 0.3*cm, page_w - 1.5*cm, y + 0.3*cm)
                c.setFont("Helvetica-Bold", 10)
                c.setFillColorRGB(0.0, 0.13, 0.28)
                for label, value in footer_rows:
                    c.drawString(1.5*cm, y, label)
                    c.drawRightString(page_w - 1.5*cm, y, value)
                    y -= 0.55*cm
        finally:
            c.save()
        return path

    def cost_pdf(self, ledger: Ledger, project_name: str = "Project") -> str:
        path = self._path(f"Cost_Estimation_{slugify(project_name)}.pdf")
        columns = [
            ("Ref", 1.5, "l"), ("Description", 3.5, "l"), ("Unit", 11.5, "l"),
            ("NR", 14.0, "r"), ("L", 15.8, "r"), ("W", 17.6, "r"), ("H", 19.4, "r"),
            ("Total Qty", 21.8, "r"), ("Rate", 24.2, "r"), (f"Amount ({self.currency})", 28.2, "r"),
        ]
        rows = []
        for item in ledger:
            d = item.dimensions
            rows.append([
                _clip(item.reference_code or "", 10),
                _clip(item.description, 48),
                _clip(item.unit, 10),
                f"{d.count:g}",
                "" if d.length is None else f"{d.length:g}",
                "" if d.width is None else f"{d.width:g}",
                "" if d.height is None else f"{d.height:g}",
                format_quantity(item.derived_quantity),
                "" if item.rate is None else format_money(item.rate),
                f"{item.amount:,.2f}",
            ])
        total = ledger.recompute_total()
        self._table_pdf(
            path,
            "COST ESTIMATION REPORT",
            f"{project_name}  |  {len(ledger)} item(s)  |  {datetime.now().strftime('%d %b %Y')}",
            columns,
            rows,
            [("TOTAL", f"{self.currency} {total:,.2f}")],
        )
        logger.info(f"Cost PDF generated: {path}")
        return path

    def inspection_pdf(self, ledger: Ledger, project_name: str = "Project") -> str:
        path = self._path(f"Inspection_Report_{slugify(project_name)}.pdf")
        columns = [
            ("#", 1.5, "l"), ("Asset", 2.5, "l"), ("Status", 10.0, "l"),
            ("Recommendation", 13.0, "l"), ("Quantity", 21.5, "r"), ("Photos", 23.0, "r"),
            ("Latitude", 25.5, "r"), ("Longitude", 28.2, "r"),
        ]
        rows = []
        for index, item in enumerate(ledger, start=1):
            loc = item.location
            rows.append([
                str(index),
                _clip(item.description, 40),
                _clip(item.status, 14),
                _clip(item.remarks, 40),
                format_quantity(item.derived_quantity),
                str(len(item.attachments)),
                "" if loc is None else f"{loc.latitude:.6f}",
                "" if loc is None else f"{loc.longitude:.6f}",
            ])
        self._table_pdf(
            path,
            "INSPECTION REPORT",
            f"{project_name}  |  {len(ledger)} asset(s)  |  {datetime.now().strftime('%d %b %Y')}",
            columns,
            rows,
            [],
        )
        logger.info(f"Inspection PDF generated: {path}")
        return path

    # ── Excel ─────────────────────────────────────────────────────────────────

    def ledgers_excel(self, cost: Ledger, inspection: Ledger, project_name: str = "Project") -> str:
        import xlsxwriter

        path = self._path(f"Ledgers_{slugify(project_name)}.xlsx")
        wb = xlsxwriter.Workbook(path)
        try:
            hdr = wb.add_format({"bold": True, "bg_color": "#14141E", "font_color": "#FFFFFF",
                                 "border": 1, "font_size": 10})
            money = wb.add_format({"num_format": "#,##0.00", "border": 1})
            qty_fmt = wb.add_format({"num_format": "#,##0.000", "border": 1})
            normal = wb.add_format({"border": 1, "font_size": 9})
            gold = wb.add_format({"bold": True, "bg_color": "#002147", "font_color": "#FFFFFF",
                                  "border": 1, "font_size": 10, "num_format": "#,##0.00"})

            # ── Sheet 1: Cost Estimation ─────────────────────────────────────
            ws = wb.add_worksheet("Cost Estimation")
            ws.set_column("A:A", 12)
            ws.set_column("B:B", 40)
            ws.set_column("C:J", 12)
            ws.set_column("K:K", 30)
            ws.write_row(0, 0, [
                "BOQ Ref", "Description", "Unit", "NR", "Length", "Width", "Height",
                "Total Qty", "Rate", f"Amount ({self.currency})", "Remarks",
            ], hdr)
            for i, item in enumerate(cost, start=1):
                d = item.dimensions
                ws.write(i, 0, item.reference_code or "", normal)
                ws.write(i, 1, item.description, normal)
                ws.write(i, 2, item.unit, normal)
                ws.write(i, 3, d.count, qty_fmt)
                ws.write(i, 4, d.length if d.length is not None else "", qty_fmt)
                ws.write(i, 5, d.width if d.width is not None else "", qty_fmt)
                ws.write(i, 6, d.height if d.height is not None else "", qty_fmt)
                ws.write(i, 7, item.derived_quantity, qty_fmt)
                ws.write(i, 8, item.rate if item.rate is not None else "", money)
                ws.write(i, 9, item.amount, money)
                ws.write(i, 10, item.remarks, normal)
            total_row = len(cost) + 2
            ws.write(total_row, 8, "TOTAL", gold)
            ws.write(total_row, 9, cost.recompute_total(), gold)

            # ── Sheet 2: Inspection ──────────────────────────────────────────
            ws2 = wb.add_worksheet("Inspection")
            ws2.set_column("A:A", 6)
            ws2.set_column("B:B", 35)
            ws2.set_column("C:C", 12)
            ws2.set_column("D:D", 35)
            ws2.set_column("E:H", 12)
            ws2.write_row(0, 0, [
                "ID", "Asset", "Status", "Recommendation", "Quantity", "Photos", "Latitude", "Longitude",
            ], hdr)
            for i, item in enumerate(inspection, start=1):
                loc = item.location
                ws2.write(i, 0, i, normal)
                ws2.write(i, 1, item.description, normal)
                ws2.write(i, 2, item.status, normal)
                ws2.write(i, 3, item.remarks, normal)
                ws2.write(i, 4, item.derived_quantity, qty_fmt)
                ws2.write(i, 5, len(item.attachments), normal)
                ws2.write(i, 6, loc.latitude if loc else "", normal)
                ws2.write(i, 7, loc.longitude if loc else "", normal)
        finally:
            wb.close()
        logger.info(f"Ledger Excel generated: {path}")
        return path


def slugify(name: str) -> str:
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in (name or "Project"))
    return safe.strip("_")[:40] or "Project"
