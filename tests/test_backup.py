import pytest

from gbaplat.backup import (
    Eeprom,
    EepromSize,
    Flash,
    FlashSize,
    Sram,
    open_backup_file,
)


def flash_command(flash, cmd):
    flash.write(0x0E005555, 0xAA)
    flash.write(0x0E002AAA, 0x55)
    flash.write(0x0E005555, cmd)


def flash_write_byte(flash, address, value):
    flash_command(flash, 0xA0)
    flash.write(address, value)


def address_bits(value, width):
    return [(value >> (width - 1 - i)) & 1 for i in range(width)]


PAYLOAD = [(i * 5 + i // 3) & 1 for i in range(64)]


def send(eeprom, bits):
    for bit in bits:
        eeprom.write(0, bit)


def test_open_backup_file_creates_requested_size(tmp_path):
    path = tmp_path / "a.sav"
    with open_backup_file(path, (512, 8192), 8192) as f:
        assert f.size == 8192
    assert path.stat().st_size == 8192


def test_open_backup_file_keeps_valid_existing_size(tmp_path):
    path = tmp_path / "a.sav"
    path.write_bytes(bytes(512))
    with open_backup_file(path, (512, 8192), 8192) as f:
        assert f.size == 512
        assert f.read(0) == 0


def test_open_backup_file_recreates_invalid_size(tmp_path):
    path = tmp_path / "a.sav"
    path.write_bytes(bytes(100))
    with open_backup_file(path, (512, 8192), 512) as f:
        assert f.size == 512
    assert path.stat().st_size == 512


def test_open_backup_file_rejects_unlisted_size(tmp_path):
    with pytest.raises(ValueError):
        open_backup_file(tmp_path / "a.sav", (512,), 8192)


def test_backup_file_writes_persist(tmp_path):
    path = tmp_path / "a.sav"
    with open_backup_file(path, (512,), 512) as f:
        f.write(3, 0x7E)
        f.memory_set(10, 4, 0x11)
    data = path.read_bytes()
    assert data[3] == 0x7E
    assert data[10:14] == bytes([0x11]) * 4


def test_sram_mirrors_address(tmp_path):
    with Sram(tmp_path / "s.sav") as sram:
        assert sram.file.size == 32768
        sram.write(0x8005, 0x12)
        assert sram.read(5) == 0x12


def test_sram_state_round_trip(tmp_path):
    with Sram(tmp_path / "s.sav") as sram:
        sram.write(1, 0x34)
        saved = sram.copy_state()
        sram.write(1, 0x56)
        sram.load_state(saved)
        assert sram.read(1) == 0x34


def test_flash_chip_id_64k(tmp_path):
    with Flash(tmp_path / "f.sav", FlashSize.SIZE_64K) as flash:
        flash_command(flash, 0x90)
        assert (flash.read(0x0E000000), flash.read(0x0E000001)) == (0xBF, 0xD4)
        flash_command(flash, 0xF0)
        assert flash.enable_chip_id is False


def test_flash_chip_id_128k(tmp_path):
    with Flash(tmp_path / "f.sav", FlashSize.SIZE_128K) as flash:
        assert flash.file.size == 131072
        flash_command(flash, 0x90)
        assert (flash.read(0x0E000000), flash.read(0x0E000001)) == (0xC2, 0x09)


def test_flash_write_byte(tmp_path):
    with Flash(tmp_path / "f.sav") as flash:
        flash_write_byte(flash, 0x0E001234, 0x42)
        assert flash.read(0x0E001234) == 0x42
        assert flash.phase == 0


def test_flash_write_without_unlock_is_ignored(tmp_path):
    with Flash(tmp_path / "f.sav") as flash:
        before = flash.read(0x0E000010)
        flash.write(0x0E000010, 0x00)
        assert flash.read(0x0E000010) == before


def test_flash_erase_chip(tmp_path):
    with Flash(tmp_path / "f.sav") as flash:
        flash_write_byte(flash, 0x0E000100, 0x00)
        flash_command(flash, 0x80)
        flash_command(flash, 0x10)
        assert flash.read(0x0E000100) == 0xFF
        assert set(flash.file.data) == {0xFF}


def test_flash_erase_sector(tmp_path):
    with Flash(tmp_path / "f.sav") as flash:
        flash_write_byte(flash, 0x0E001010, 0x00)
        flash_write_byte(flash, 0x0E002010, 0x00)
        flash_command(flash, 0x80)
        flash.write(0x0E005555, 0xAA)
        flash.write(0x0E002AAA, 0x55)
        flash.write(0x0E001000, 0x30)
        assert flash.read(0x0E001010) == 0xFF
        assert flash.read(0x0E002010) == 0x00


def test_flash_bank_select_128k(tmp_path):
    with Flash(tmp_path / "f.sav", FlashSize.SIZE_128K) as flash:
        flash_command(flash, 0xB0)
        flash.write(0x0E000000, 1)
        assert flash.current_bank == 1
        flash_write_byte(flash, 0x0E000020, 0x00)
        assert flash.file.read(65536 + 0x20) == 0x00
        flash_command(flash, 0xB0)
        flash.write(0x0E000000, 0)
        assert flash.read(0x0E000020) == 0xFF


def test_flash_bank_select_ignored_on_64k(tmp_path):
    with Flash(tmp_path / "f.sav", FlashSize.SIZE_64K) as flash:
        flash_command(flash, 0xB0)
        assert flash.phase == 0
        assert flash.enable_select is False


def test_flash_state_round_trip(tmp_path):
    with Flash(tmp_path / "f.sav") as flash:
        flash_write_byte(flash, 0x0E000001, 0x21)
        flash_command(flash, 0x90)
        saved = flash.copy_state()
        flash_command(flash, 0xF0)
        flash_write_byte(flash, 0x0E000002, 0x00)
        flash.load_state(saved)
        assert flash.enable_chip_id is True
        assert flash.file.data == saved["data"]


def test_eeprom_write_then_read(tmp_path):
    scheduled = []
    with Eeprom(tmp_path / "e.sav", EepromSize.SIZE_4K,
                lambda cycles, cb: scheduled.append((cycles, cb))) as eeprom:
        assert eeprom.file.size == 512
        send(eeprom, [1, 0] + address_bits(5, 6) + PAYLOAD + [0])
        assert len(scheduled) == 1
        assert scheduled[0][0] == 101400
        assert eeprom.read(0) == 0
        scheduled[0][1]()
        assert eeprom.read(0) == 1

        send(eeprom, [1, 1] + address_bits(5, 6) + [0])
        assert [eeprom.read(0) for _ in range(4)] == [0, 0, 0, 0]
        assert [eeprom.read(0) for _ in range(64)] == PAYLOAD
        assert eeprom.read(0) == 1


def test_eeprom_ignores_writes_while_busy(tmp_path):
    scheduled = []
    with Eeprom(tmp_path / "e.sav", EepromSize.SIZE_4K,
                lambda cycles, cb: scheduled.append(cb)) as eeprom:
        send(eeprom, [1, 0] + address_bits(0, 6) + PAYLOAD + [0])
        before = eeprom.copy_state()
        send(eeprom, [1, 1, 0, 1])
        assert eeprom.copy_state() == before
        assert eeprom.busy


def test_eeprom_data_persists(tmp_path):
    path = tmp_path / "e.sav"
    scheduled = []
    with Eeprom(path, EepromSize.SIZE_64K, lambda c, cb: scheduled.append(cb)) as eeprom:
        send(eeprom, [1, 0] + address_bits(9, 14) + PAYLOAD + [0])
    with Eeprom(path, EepromSize.SIZE_64K, lambda c, cb: None) as eeprom:
        assert eeprom.file.size == 8192
        send(eeprom, [1, 1] + address_bits(9, 14) + [0])
        for _ in range(4):
            eeprom.read(0)
        assert [eeprom.read(0) for _ in range(64)] == PAYLOAD


def test_eeprom_detect_defaults_to_8k_then_hint(tmp_path):
    path = tmp_path / "e.sav"
    with Eeprom(path, EepromSize.DETECT, lambda c, cb: None) as eeprom:
        assert eeprom.size == EepromSize.SIZE_64K
        assert eeprom.file.size == 8192
        eeprom.set_size_hint(EepromSize.SIZE_4K)
        assert eeprom.size == EepromSize.SIZE_4K
        assert eeprom.file.size == 512
        eeprom.set_size_hint(EepromSize.SIZE_64K)
        assert eeprom.file.size == 512


def test_eeprom_hint_ignored_without_detect(tmp_path):
    with Eeprom(tmp_path / "e.sav", EepromSize.SIZE_4K, lambda c, cb: None) as eeprom:
        eeprom.set_size_hint(EepromSize.SIZE_64K)
        assert eeprom.size == EepromSize.SIZE_4K
        assert eeprom.file.size == 512


def test_eeprom_state_round_trip(tmp_path):
    with Eeprom(tmp_path / "e.sav", EepromSize.SIZE_4K, lambda c, cb: None) as eeprom:
        send(eeprom, [1, 1, 0, 1])
        saved = eeprom.copy_state()
        send(eeprom, [0, 0, 0])
        eeprom.load_state(saved)
        assert eeprom.copy_state() == saved