import sys
from PySide6.QtWidgets import QApplication, QMainWindow, QWidget, QHBoxLayout, QVBoxLayout, QLabel, QPushButton

from geoorbit import globe
from geoorbit.config import ControlsConfig, GeoPositionConfig
from geoorbit.log_utils import setup_logging
from geoorbit.orbit_controls import CameraTargetPose


class GlobeTestWidget(QWidget):

    def __init__(self):
        super().__init__()
        hbox = QHBoxLayout()
        vbox = QVBoxLayout()

        # Pose read-out
        self.pose_text = QLabel('')
        vbox.addWidget(self.pose_text)

        # View center read-out
        self.center_text = QLabel('')
        vbox.addWidget(self.center_text)

        self.reset_pan_button = QPushButton('Reset pan')
        vbox.addWidget(self.reset_pan_button)

        self.home_button = QPushButton('Home')
        vbox.addWidget(self.home_button)
        vbox.addStretch()
        hbox.addLayout(vbox)

        # Globe Widget, starting over Denver
        home = GeoPositionConfig(longitude=-104.99, latitude=39.74, heading=90.0,
                                 pitch=35.0, distance=3_000_000.0)
        config = ControlsConfig(enable_damping=True, damping_factor=0.1,
                                min_distance=200.0, max_distance=60_000_000.0,
                                max_polar_angle=1.5, zoom_to_cursor=True)
        self.globe = globe.GlobeWidget(self, home=home, config=config)
        hbox.addWidget(self.globe, stretch=1)
        self.setLayout(hbox)

        # Connect globe events
        self.globe.poseChanged.connect(self.on_pose)
        self.globe.infoSig.connect(self.on_info)
        self.reset_pan_button.clicked.connect(self.on_reset_pan)
        self.home_button.clicked.connect(self.globe.go_home)
        self.on_pose(self.globe.controls.invert_camera_hpd())

    def on_pose(self, pose: CameraTargetPose):
        self.pose_text.setText(
            f'heading {pose.heading:8.2f}\n'
            f'pitch   {pose.pitch:8.2f}\n'
            f'dist    {pose.distance / 1000.0:10.1f} km\n'
            f'x       {pose.x:10.1f} m\n'
            f'y       {pose.y:10.1f} m'
        )

    def on_info(self, info: dict):
        center = info.get('center')
        if center is None:
            self.center_text.setText('center: off globe')
        else:
            self.center_text.setText(f"center: {center['latitude']:.4f}, {center['longitude']:.4f}")

    def on_reset_pan(self):
        self.globe.controls.set_camera_position(
            CameraTargetPose(**{**self.globe.controls.target_pose.as_dict(), 'x': 0.0, 'y': 0.0}))


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle('Globe orbit controls')
        self.resize(1280, 800)
        self.widget = GlobeTestWidget()
        self.setCentralWidget(self.widget)

    def closeEvent(self, evt):
        self.widget.globe.close()
        super().closeEvent(evt)


def main():
    setup_logging()
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == '__main__':
    main()
