"""CLI entrypoints for the cooler desktop app, device commands, diagnostics and replay."""

from __future__ import annotations

import argparse
import json
import time
from dataclasses import asdict
from pathlib import Path

from cryo_core import (
    DiagnosticsExporter,
    PollController,
    TecInputs,
    build_doctor_payload,
    load_settings,
    normalize_inputs,
    update_settings,
)
from cryo_core.logging_setup import configure_logging
from cryo_tec import ReplayRunner, TecClient, TecError, TecTransport, status_badges
from cryo_tec.models import status_flags


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _resolve_port(args: argparse.Namespace) -> str | None:
    return getattr(args, "port", None) or load_settings().data.last_port


def _no_port() -> int:
    _print_json({"success": False, "error": "No serial port given and none stored in settings"})
    return 2


def cmd_run(_args: argparse.Namespace) -> int:
    from .app import run_gui

    return run_gui()


def cmd_list_ports(_args: argparse.Namespace) -> int:
    last_port = load_settings().data.last_port
    _print_json(
        [
            {
                "device": d.device,
                "description": d.description,
                "hwid": d.hwid,
                "vid": d.vid,
                "pid": d.pid,
                "last_used": d.device == last_port,
            }
            for d in TecTransport.discover()
        ]
    )
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = load_settings()
    payload = build_doctor_payload(cfg)

    if args.export:
        exporter = DiagnosticsExporter()
        out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
        bundle = exporter.bundle(cfg=cfg, doctor_payload=payload, recent_poll_events=[], output_dir=out_dir)
        payload["diagnostics_bundle"] = str(bundle)

    _print_json(payload)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    port = _resolve_port(args)
    if not port:
        return _no_port()
    try:
        client = TecClient.open(port)
    except TecError as exc:
        _print_json({"success": False, "port": port, "error": str(exc)})
        return 1
    try:
        status = client.heartbeat()
        payload = {
            "success": True,
            "port": port,
            "firmware": str(client.firmware_version()),
            "hardware": client.hardware_version(),
            "status_raw": int(status),
            "flags": status_flags(status),
            "badges": status_badges(status),
            "pid": {
                "p": client.p_coefficient(),
                "i": client.i_coefficient(),
                "d": client.d_coefficient(),
            },
            "setpoint_offset": client.setpoint_offset(),
        }
    except TecError as exc:
        payload = {"success": False, "port": port, "error": str(exc)}
    finally:
        client.close()

    _print_json(payload)
    return 0 if payload["success"] else 1


def cmd_monitor(args: argparse.Namespace) -> int:
    port = _resolve_port(args)
    if not port:
        return _no_port()
    controller = PollController(poll_ms=args.interval_ms)
    try:
        controller.connect(port, apply_startup=False)
    except TecError as exc:
        _print_json({"success": False, "port": port, "error": str(exc)})
        return 1

    samples = []
    for idx in range(args.samples):
        if idx:
            time.sleep(args.interval_ms / 1000)
        if controller.tick(force=True):
            samples.append(asdict(controller.status.last_data))
    status = controller.status
    controller.disconnect()

    _print_json(
        {
            "success": bool(samples),
            "port": port,
            "samples": samples,
            "badges": status_badges(status.device_status),
            "last_error": status.last_error,
            "recoveries": status.recoveries,
            "bounds": {w.label: list(w.bounds) for w in controller.telemetry},
        }
    )
    return 0 if samples else 1


def cmd_enable(args: argparse.Namespace) -> int:
    port = _resolve_port(args)
    if not port:
        return _no_port()
    stored = load_settings().data.tec_inputs
    inputs = TecInputs(
        p_coef=stored.p_coef if args.p is None else args.p,
        i_coef=stored.i_coef if args.i is None else args.i,
        d_coef=stored.d_coef if args.d is None else args.d,
        set_point=stored.set_point if args.setpoint is None else args.setpoint,
        max_power=stored.max_power if args.max_power is None else args.max_power,
    )
    # Same ranges as the stored settings.
    normalize_inputs(inputs)

    try:
        client = TecClient.open(port)
        try:
            client.enable(inputs.p_coef, inputs.i_coef, inputs.d_coef, inputs.max_power, inputs.set_point)
        finally:
            client.close()
    except (TecError, ValueError) as exc:
        _print_json({"success": False, "port": port, "error": f"Failed to enable TEC ({exc})"})
        return 1

    _print_json(
        {
            "success": True,
            "port": port,
            "p": inputs.p_coef,
            "i": inputs.i_coef,
            "d": inputs.d_coef,
            "max_power": inputs.max_power,
            "setpoint": inputs.set_point,
        }
    )
    return 0


def cmd_disable(args: argparse.Namespace) -> int:
    port = _resolve_port(args)
    if not port:
        return _no_port()
    try:
        client = TecClient.open(port)
        try:
            client.disable()
        finally:
            client.close()
    except TecError as exc:
        _print_json({"success": False, "port": port, "error": f"Failed to disable TEC ({exc})"})
        return 1

    _print_json({"success": True, "port": port})
    return 0


def cmd_settings_show(_args: argparse.Namespace) -> int:
    _print_json(asdict(load_settings()))
    return 0


def cmd_settings_set(args: argparse.Namespace) -> int:
    cfg = load_settings()
    changes = {
        name: value
        for name, value in (
            ("p_coef", args.p),
            ("i_coef", args.i),
            ("d_coef", args.d),
            ("set_point", args.setpoint),
            ("max_power", args.max_power),
            ("last_port", args.port),
            ("open_port_on_startup", args.open_on_startup),
            ("enable_on_startup", args.enable_on_startup),
        )
        if value is not None
    }
    changed = update_settings(cfg, **changes)
    payload = asdict(cfg)
    payload["changed"] = changed
    _print_json(payload)
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    runner = ReplayRunner()
    report = runner.run(Path(args.transcript), strict=not args.no_strict)
    payload = asdict(report)
    payload["success"] = len(report.errors) == 0
    _print_json(payload)
    return 0 if not report.errors else 2


def _bool_arg(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def _add_tec_inputs(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--p", type=float, default=None, help="P coefficient")
    cmd.add_argument("--i", type=float, default=None, help="I coefficient")
    cmd.add_argument("--d", type=float, default=None, help="D coefficient")
    cmd.add_argument("--max-power", type=int, default=None, help="Maximum TEC power level (0-100)")
    cmd.add_argument("--setpoint", type=float, default=None, help="Setpoint offset")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cryo-cooler", description="Cryo cooler TEC controller app and tools")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run", help="Run desktop app")
    run_cmd.set_defaults(func=cmd_run)

    list_cmd = sub.add_parser("list-ports", help="List serial ports")
    list_cmd.set_defaults(func=cmd_list_ports)

    doctor_cmd = sub.add_parser("doctor", help="Print diagnostics and detected ports")
    doctor_cmd.add_argument("--export", action="store_true", help="Export offline diagnostics bundle")
    doctor_cmd.add_argument("--out-dir", default=None, help="Optional output directory for diagnostics bundle")
    doctor_cmd.set_defaults(func=cmd_doctor)

    status_cmd = sub.add_parser("status", help="Read versions, status flags and PID settings")
    status_cmd.add_argument("--port", default=None, help="Serial port (defaults to the last used one)")
    status_cmd.set_defaults(func=cmd_status)

    monitor_cmd = sub.add_parser("monitor", help="Poll telemetry samples")
    monitor_cmd.add_argument("--port", default=None, help="Serial port (defaults to the last used one)")
    monitor_cmd.add_argument("--samples", type=int, default=10)
    monitor_cmd.add_argument("--interval-ms", type=int, default=500)
    monitor_cmd.set_defaults(func=cmd_monitor)

    enable_cmd = sub.add_parser("enable", help="Push PID/power/setpoint and enable the TEC")
    enable_cmd.add_argument("--port", default=None, help="Serial port (defaults to the last used one)")
    _add_tec_inputs(enable_cmd)
    enable_cmd.set_defaults(func=cmd_enable)

    disable_cmd = sub.add_parser("disable", help="Disable the TEC")
    disable_cmd.add_argument("--port", default=None, help="Serial port (defaults to the last used one)")
    disable_cmd.set_defaults(func=cmd_disable)

    settings_cmd = sub.add_parser("settings", help="Show or change stored settings")
    settings_sub = settings_cmd.add_subparsers(dest="settings_cmd", required=True)
    show_cmd = settings_sub.add_parser("show", help="Print stored settings")
    show_cmd.set_defaults(func=cmd_settings_show)
    set_cmd = settings_sub.add_parser("set", help="Change stored settings")
    _add_tec_inputs(set_cmd)
    set_cmd.add_argument("--port", default=None, help="Serial port to remember")
    set_cmd.add_argument("--open-on-startup", type=_bool_arg, default=None)
    set_cmd.add_argument("--enable-on-startup", type=_bool_arg, default=None)
    set_cmd.set_defaults(func=cmd_settings_set)

    replay_cmd = sub.add_parser("replay", help="Analyze captured serial transcript")
    replay_cmd.add_argument("--transcript", required=True, help="Path to JSONL transcript")
    replay_cmd.add_argument("--no-strict", action="store_true", help="Report without failing on protocol errors")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging(console=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
