"""
Tests for the pync250 command line interface.
"""
import json

import pytest

from pync250 import main as cli


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Render rich tables wide enough that cell text is not wrapped."""
    monkeypatch.setattr(cli.console, 'width', 200)


class TestCheck:
    """Tests for `pync250 check`."""

    def test_packaged_data(self, capsys):
        assert cli.main(['check']) == 0
        out = capsys.readouterr().out
        assert "Reference data OK" in out
        assert "Hard maple" in out

    def test_reports_provisional_tables(self, capsys):
        assert cli.main(['check']) == 0
        out = capsys.readouterr().out
        assert "Provisional table: height" in out
        assert "verified groups: Hard maple" in out

    def test_published_tables_not_reported(self, cfg_copy, capsys):
        for path in cfg_copy.glob('nc250_table*.json'):
            data = json.loads(path.read_text(encoding='utf-8'))
            data['provisional'] = False
            path.write_text(json.dumps(data), encoding='utf-8')

        assert cli.main(['--cfg-dir', str(cfg_copy), 'check']) == 0
        assert "Provisional" not in capsys.readouterr().out

    def test_cfg_dir(self, cfg_copy, capsys):
        assert cli.main(['--cfg-dir', str(cfg_copy), 'check']) == 0
        assert "Reference data OK" in capsys.readouterr().out

    def test_broken_cfg_dir(self, cfg_copy, capsys):
        path = cfg_copy / 'nc250_table1_height.json'
        data = json.loads(path.read_text(encoding='utf-8'))
        del data['species_groups']['Hard maple']
        path.write_text(json.dumps(data), encoding='utf-8')

        assert cli.main(['--cfg-dir', str(cfg_copy), 'check']) == 1
        assert "Error" in capsys.readouterr().out

    def test_missing_cfg_dir(self, tmp_path, capsys):
        assert cli.main(['--cfg-dir', str(tmp_path / 'nowhere'), 'check']) == 1


class TestEstimate:
    """Tests for `pync250 estimate`."""

    def test_reference_tree(self, capsys):
        code = cli.main(['estimate', '--spcd', '318', '--dbh', '4', '12',
                         '--site-index', '65', '--basal-area', '88'])
        assert code == 0
        out = capsys.readouterr().out
        assert "Hard maple" in out
        assert "49.6" in out
        assert "90.8" in out

    def test_unresolved_species(self, capsys):
        code = cli.main(['estimate', '--spcd', '999', '--dbh', '12',
                         '--site-index', '65', '--basal-area', '88'])
        assert code == 1
        assert "999" in capsys.readouterr().out

    def test_invalid_dbh(self, capsys):
        code = cli.main(['estimate', '--spcd', '318', '--dbh', '-2',
                         '--site-index', '65', '--basal-area', '88'])
        assert code == 1

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            cli.main([])
