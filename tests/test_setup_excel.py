"""Tests for the master workbook bootstrap script."""

from __future__ import annotations

import openpyxl
import pytest

from crediario import data_manager, setup_excel


def test_create_master_workbook_writes_every_sheet_header(tmp_path):
    destination = setup_excel.create_master_workbook(tmp_path / "nested" / "ledger.xlsx")

    workbook = openpyxl.load_workbook(destination)
    assert workbook.sheetnames == list(data_manager.SHEET_COLUMNS)
    for sheet_name, columns in data_manager.SHEET_COLUMNS.items():
        header = [cell.value for cell in workbook[sheet_name][1]]
        assert header == list(columns)
        assert workbook[sheet_name].max_row == 1
        assert workbook[sheet_name]["A1"].font.bold


def test_create_master_workbook_refuses_to_overwrite(tmp_path):
    destination = setup_excel.create_master_workbook(tmp_path / "ledger.xlsx")

    with pytest.raises(FileExistsError):
        setup_excel.create_master_workbook(destination)

    assert setup_excel.create_master_workbook(destination, overwrite=True) == destination


def test_main_creates_workbook_from_config(config_factory, capsys):
    bundle = config_factory(make_relative=True)
    bundle.workbook_path.unlink()

    assert setup_excel.main(["--config", str(bundle.config_path)]) == 0

    assert bundle.workbook_path.exists()
    assert "[SUCCESS]" in capsys.readouterr().out


def test_main_reports_existing_workbook(config_factory, capsys):
    bundle = config_factory()

    assert setup_excel.main(["--config", str(bundle.config_path)]) == 1
    assert "--force" in capsys.readouterr().out
    assert setup_excel.main(["--config", str(bundle.config_path), "--force"]) == 0


def test_main_reports_missing_config(tmp_path, capsys):
    assert setup_excel.main(["--config", str(tmp_path / "missing.ini")]) == 1
    assert "[ERROR]" in capsys.readouterr().out
