from datetime import datetime

from gbaplat.gpio import GPIO, RTC, PortDirection, SolarSensor

ALL_OUT = 0b111
SIO_IN = 0b101


def cs_bits():
    return 1 << RTC.CS


def send_byte(rtc, value):
    cs = cs_bits()
    for i in range(8):
        bit = (value >> i) & 1
        rtc.write(cs | (bit << RTC.SIO))
        rtc.write(cs | (1 << RTC.SCK) | (bit << RTC.SIO))


def start_command(rtc, command):
    rtc.set_port_directions(ALL_OUT)
    rtc.write(0)
    rtc.write(cs_bits())
    send_byte(rtc, command)


def receive_bytes(rtc, count):
    rtc.set_port_directions(SIO_IN)
    cs = cs_bits()
    out = []
    for _ in range(count):
        value = 0
        for i in range(8):
            rtc.write(cs)
            rtc.write(cs | (1 << RTC.SCK))
            value |= ((rtc.read() >> RTC.SIO) & 1) << i
        out.append(value)
    return out


def make_rtc(clock=datetime.now):
    irqs = []
    return RTC(lambda: irqs.append(True), clock=clock), irqs


def test_port_direction_from_bits():
    sensor = SolarSensor()
    sensor.set_port_directions(0b0101)
    assert sensor.port_direction(0) == PortDirection.OUT
    assert sensor.port_direction(1) == PortDirection.IN
    assert sensor.port_direction(2) == PortDirection.OUT


def test_gpio_reads_disabled_return_zero():
    gpio = GPIO()
    gpio.write(GPIO.DIRECTION, 0b0101)
    assert gpio.read(GPIO.DIRECTION) == 0
    assert gpio.read(GPIO.CONTROL) == 0


def test_gpio_control_and_direction():
    gpio = GPIO()
    gpio.write(GPIO.CONTROL, 1)
    assert gpio.read(GPIO.CONTROL) == 1
    gpio.write(GPIO.DIRECTION, 0b0111)
    rd = gpio.read(GPIO.DIRECTION)
    assert rd & 0b0111 == 0
    assert rd | 0b0111 == 0b1111


def test_gpio_direction_propagates_to_devices():
    gpio = GPIO()
    sensor = SolarSensor()
    gpio.attach(sensor)
    gpio.write(GPIO.DIRECTION, 0b0011)
    assert sensor.port_directions == 0b0011
    assert gpio.get(SolarSensor) is sensor
    gpio.reset()
    assert sensor.port_directions == 0


def test_gpio_data_reads_solar_flag():
    gpio = GPIO()
    sensor = SolarSensor()
    sensor.set_light_level(255)
    gpio.attach(sensor)
    gpio.write(GPIO.CONTROL, 1)
    gpio.write(GPIO.DIRECTION, (1 << SolarSensor.CLK) | (1 << SolarSensor.RST))
    assert gpio.read(GPIO.DATA) == 0
    gpio.write(GPIO.DATA, 1 << SolarSensor.CLK)
    gpio.write(GPIO.DATA, 0)
    assert gpio.read(GPIO.DATA) == 1 << SolarSensor.FLG


def test_gpio_state_round_trip():
    gpio = GPIO()
    rtc, _ = make_rtc()
    gpio.attach(rtc)
    gpio.write(GPIO.CONTROL, 1)
    gpio.write(GPIO.DIRECTION, 0b0111)
    gpio.write(GPIO.DATA, 1 << RTC.CS)
    state = gpio.copy_state()

    other = GPIO()
    other_rtc, _ = make_rtc()
    other.attach(other_rtc)
    other.load_state(state)
    assert other.copy_state() == state
    assert other.wr_mask == gpio.wr_mask


def test_solar_sensor_counts_falling_edges_and_resets():
    sensor = SolarSensor()
    sensor.set_port_directions((1 << SolarSensor.CLK) | (1 << SolarSensor.RST))
    sensor.set_light_level(255)
    assert sensor.read() == 0
    sensor.write(1 << SolarSensor.CLK)
    sensor.write(0)
    assert sensor.read() == 1 << SolarSensor.FLG
    sensor.write(1 << SolarSensor.RST)
    assert sensor.read() == 0


def test_solar_sensor_ignores_input_pins():
    sensor = SolarSensor()
    sensor.set_light_level(255)
    sensor.write(1 << SolarSensor.CLK)
    sensor.write(0)
    assert sensor.copy_state()["counter"] == 0


def test_solar_sensor_state_round_trip():
    sensor = SolarSensor()
    sensor.set_port_directions(1 << SolarSensor.CLK)
    for _ in range(5):
        sensor.write(1 << SolarSensor.CLK)
        sensor.write(0)
    state = sensor.copy_state()
    other = SolarSensor()
    other.load_state(state)
    assert other.copy_state() == state
    assert state["counter"] == 5


def test_rtc_read_control_defaults_to_24h_mode():
    rtc, _ = make_rtc()
    start_command(rtc, 0xC6)
    assert receive_bytes(rtc, 1) == [64]


def test_rtc_reversed_command_matches_normal():
    rtc, _ = make_rtc()
    start_command(rtc, 0xC6)
    normal = receive_bytes(rtc, 1)
    rtc.reset()
    start_command(rtc, 0x63)
    assert receive_bytes(rtc, 1) == normal


def test_rtc_write_then_read_control():
    rtc, _ = make_rtc()
    start_command(rtc, 0x46)
    send_byte(rtc, 0x42)
    start_command(rtc, 0xC6)
    assert receive_bytes(rtc, 1) == [0x42]


def test_rtc_date_time_in_bcd():
    rtc, _ = make_rtc(clock=lambda: datetime(2023, 5, 17, 13, 45, 30))
    start_command(rtc, 0xA6)
    assert receive_bytes(rtc, 7) == [0x23, 0x05, 0x17, 0x03, 0x13, 0x45, 0x30]


def test_rtc_time_register_matches_date_time_tail():
    clock = lambda: datetime(2023, 5, 17, 13, 45, 30)  # noqa: E731
    rtc, _ = make_rtc(clock=clock)
    start_command(rtc, 0xA6)
    date_time = receive_bytes(rtc, 7)
    start_command(rtc, 0xE6)
    assert receive_bytes(rtc, 3) == date_time[4:]


def test_rtc_force_irq():
    rtc, irqs = make_rtc()
    start_command(rtc, 0x36)
    assert irqs == [True]


def test_rtc_force_reset_clears_24h_mode():
    rtc, _ = make_rtc()
    start_command(rtc, 0x06)
    start_command(rtc, 0xC6)
    assert receive_bytes(rtc, 1) == [0]


def test_rtc_state_round_trip():
    rtc, _ = make_rtc()
    start_command(rtc, 0x46)
    send_byte(rtc, 0x40)
    state = rtc.copy_state()
    other, _ = make_rtc()
    other.load_state(state)
    assert other.copy_state() == state